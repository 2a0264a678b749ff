"""
Polis Governance Package

Stake-weighted polls, staker reward distribution and governed execution of
administrative messages.

Core imports are lazily loaded. For direct module access, import from
submodules:

    from polis.contract import GovernanceContract
    from polis.config import load_config
    from polis.exceptions import GovernanceError
"""

__version__ = "0.1.0"


def __getattr__(name):
    """Lazy module loading keeps `import polis` cheap."""
    if name == 'GovernanceContract':
        from .contract import GovernanceContract
        return GovernanceContract
    elif name == 'load_config':
        from .config import load_config
        return load_config
    elif name == 'GovernanceError':
        from .exceptions import GovernanceError
        return GovernanceError
    raise AttributeError(f"module 'polis' has no attribute {name!r}")

__all__ = ['GovernanceContract', 'load_config', 'GovernanceError']
