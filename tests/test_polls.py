"""
Poll Lifecycle Test Suite

Coverage:
  - Poll dataclass: tallies, quorum / approval arithmetic, status transitions
  - Poll messages: tagged variants, ordering, dict form
  - VoteSnapshot: one vote per (poll, voter), power frozen at cast time
  - PollRegistry: creation with deposit escrow, voting window, settlement
    rules, deposit policies, early settlement, expiry, listing
"""

import os
import sys
from decimal import Decimal

import pytest

# ── Path setup ────────────────────────────────────────────────────────
ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from polis.config import DepositPolicy, PollConfig
from polis.exceptions import (
    AlreadyVotedError,
    ExecutionWindowOpenError,
    InsufficientBalanceError,
    InsufficientDepositError,
    InvalidPollError,
    InvalidTransitionError,
    NoStakeError,
    NotPassedError,
    PollNotFoundError,
    PollNotInProgressError,
    StateConflictError,
    ValidationError,
    VotingNotEndedError,
)
from polis.governance import (
    CommunitySpend,
    CommunityUpdateConfig,
    ForwardMessage,
    Poll,
    PollRegistry,
    PollStatus,
    UpdateGovernanceConfig,
    VoteChoice,
    VoteSnapshot,
    message_from_dict,
)
from polis.governance.messages import validate_messages
from polis.staking import RewardDistributor, RewardIndex, StakeLedger
from polis.tokens import TokenLedger, Treasury


# ══════════════════════════════════════════════════════════════════════
#  HELPERS
# ══════════════════════════════════════════════════════════════════════

GOV = "polis1gov"
CREATOR = "polis1creator0"
ALICE = "polis1alice000"
BOB = "polis1bob00000"
CAROL = "polis1carol000"
DAVE = "polis1dave0000"

DEFAULT_STAKES = {ALICE: "300", BOB: "200", CAROL: "500"}


def make_config(**overrides):
    config = PollConfig(
        quorum=Decimal("0.3"),
        threshold=Decimal("0.5"),
        voting_period=10,
        timelock_period=5,
        expiration_period=20,
        proposal_deposit=Decimal("100"),
    )
    for key, value in overrides.items():
        setattr(config, key, value)
    return config


def make_registry(stakes=None, **config_overrides):
    config = make_config(**config_overrides)
    token = TokenLedger()
    token.mint(CREATOR, Decimal("1000"))

    index = RewardIndex()
    distributor = RewardDistributor(index)
    holder = {}
    ledger = StakeLedger(
        index,
        distributor,
        is_poll_active=lambda poll_id: holder["registry"].is_active(poll_id),
    )
    for account, amount in (DEFAULT_STAKES if stakes is None else stakes).items():
        ledger.stake(account, Decimal(amount))

    registry = PollRegistry(
        ledger,
        VoteSnapshot(ledger),
        distributor,
        Treasury(token, GOV),
        get_config=lambda: config,
    )
    holder["registry"] = registry
    return registry, ledger, token, config


def open_poll(registry, height=0, deposit="100", **kwargs):
    return registry.create_poll(
        CREATOR,
        Decimal(deposit),
        "Raise the fee",
        "Raise the protocol fee to 0.3%",
        height,
        **kwargs,
    )


def make_poll(**kwargs):
    defaults = dict(
        id=1,
        creator=CREATOR,
        deposit_amount=Decimal("100"),
        title="Test poll",
        description="A poll used in tests",
        start_height=0,
        end_height=10,
        total_voting_power_at_creation=Decimal("1000"),
        executable_height=15,
        expiration_height=35,
    )
    defaults.update(kwargs)
    return Poll(**defaults)


# ══════════════════════════════════════════════════════════════════════
#  POLL
# ══════════════════════════════════════════════════════════════════════

class TestPoll:

    def test_defaults(self):
        poll = make_poll()
        assert poll.status == PollStatus.IN_PROGRESS
        assert poll.total_votes == Decimal("0")
        assert poll.is_in_progress
        assert not poll.is_terminal

    def test_participation_and_approval(self):
        poll = make_poll(yes_votes=Decimal("300"), no_votes=Decimal("200"))
        assert poll.participation == Decimal("0.5")
        assert poll.approval_rate == Decimal("0.6")

    def test_abstain_counts_for_quorum_only(self):
        poll = make_poll(yes_votes=Decimal("10"), abstain_votes=Decimal("290"))
        assert poll.participation == Decimal("0.3")
        assert poll.approval_rate == Decimal("1")

    def test_zero_votes_never_reach_quorum(self):
        poll = make_poll()
        assert not poll.quorum_reached(Decimal("0"))

    def test_zero_denominator(self):
        poll = make_poll(total_voting_power_at_creation=Decimal("0"))
        assert poll.participation == Decimal("0")
        assert not poll.quorum_reached(Decimal("0.3"))
        poll.yes_votes = Decimal("100")
        assert poll.participation == Decimal("1")
        assert poll.quorum_reached(Decimal("1"))

    def test_valid_transitions(self):
        poll = make_poll()
        poll.transition_to(PollStatus.PASSED, 10, "ok")
        poll.transition_to(PollStatus.EXECUTED, 15, "done")
        assert poll.is_terminal
        assert [h["to"] for h in poll.history] == ["PASSED", "EXECUTED"]

    def test_invalid_transition_raises(self):
        poll = make_poll()
        with pytest.raises(InvalidTransitionError):
            poll.transition_to(PollStatus.EXECUTED, 10)
        assert poll.status == PollStatus.IN_PROGRESS

    @pytest.mark.parametrize("terminal", [
        PollStatus.REJECTED, PollStatus.EXECUTED, PollStatus.EXPIRED, PollStatus.FAILED,
    ])
    def test_terminal_states_are_final(self, terminal):
        poll = make_poll(status=terminal)
        assert poll.is_terminal
        with pytest.raises(InvalidTransitionError):
            poll.transition_to(PollStatus.PASSED, 20)

    def test_to_dict(self):
        d = make_poll(link="https://polis.example/1").to_dict()
        assert d["status"] == "IN_PROGRESS"
        assert d["totalVotingPowerAtCreation"] == "1000"
        assert d["link"] == "https://polis.example/1"
        assert d["messages"] == []

    def test_repr(self):
        assert "Test poll" in repr(make_poll())


# ══════════════════════════════════════════════════════════════════════
#  MESSAGES
# ══════════════════════════════════════════════════════════════════════

ADDRESSES = {"governance": GOV, "community": "polis1community"}


class TestMessages:

    def test_destinations(self):
        assert UpdateGovernanceConfig(params={"quorum": "0.2"}).destination(ADDRESSES) == GOV
        spend = CommunitySpend(recipient=DAVE, amount=Decimal("5"))
        assert spend.destination(ADDRESSES) == "polis1community"
        assert ForwardMessage(contract="polis1other", msg={}).destination(ADDRESSES) == "polis1other"

    def test_payloads(self):
        assert UpdateGovernanceConfig(params={"quorum": "0.2"}).payload() == {
            "action": "update_config", "quorum": "0.2",
        }
        assert CommunitySpend(recipient=DAVE, amount=Decimal("5")).payload()["action"] == "spend"
        assert ForwardMessage(contract="polis1other", msg={"ping": 1}).payload() == {"ping": 1}

    def test_validate_sorts_by_order(self):
        batch = validate_messages([
            CommunitySpend(order=2, recipient=DAVE, amount=Decimal("1")),
            UpdateGovernanceConfig(order=1, params={}),
            CommunityUpdateConfig(order=2, spend_limit=Decimal("10")),
        ])
        assert [type(m) for m in batch] == [
            UpdateGovernanceConfig, CommunitySpend, CommunityUpdateConfig,
        ]

    def test_validate_rejects_bad_spend(self):
        with pytest.raises(InvalidPollError):
            validate_messages([CommunitySpend(recipient=DAVE, amount=Decimal("0"))])

    def test_validate_rejects_forward_without_contract(self):
        with pytest.raises(InvalidPollError):
            validate_messages([ForwardMessage(msg={"x": 1})])

    def test_from_dict(self):
        msg = message_from_dict({
            "kind": "community_spend", "order": 3, "recipient": DAVE, "amount": "12.5",
        })
        assert msg == CommunitySpend(order=3, recipient=DAVE, amount=Decimal("12.5"))
        assert msg.to_dict()["amount"] == "12.5"

    def test_from_dict_unknown_kind(self):
        with pytest.raises(InvalidPollError):
            message_from_dict({"kind": "self_destruct"})


# ══════════════════════════════════════════════════════════════════════
#  VOTE SNAPSHOT
# ══════════════════════════════════════════════════════════════════════

class TestVoteSnapshot:

    def test_power_is_balance_at_vote(self):
        _, ledger, _, _ = make_registry()
        snapshot = VoteSnapshot(ledger)
        record = snapshot.record_vote(1, ALICE, "yes", 3)
        assert record.power == Decimal("300")
        assert record.choice == VoteChoice.YES
        ledger.unstake(ALICE, Decimal("300"))
        assert snapshot.get_vote(1, ALICE).power == Decimal("300")

    def test_choice_parsing(self):
        assert VoteChoice.parse("ABSTAIN") == VoteChoice.ABSTAIN
        assert VoteChoice.parse(VoteChoice.NO) == VoteChoice.NO
        with pytest.raises(ValidationError):
            VoteChoice.parse("maybe")

    def test_second_vote_rejected(self):
        _, ledger, _, _ = make_registry()
        snapshot = VoteSnapshot(ledger)
        snapshot.record_vote(1, ALICE, "yes", 3)
        with pytest.raises(AlreadyVotedError):
            snapshot.record_vote(1, ALICE, "no", 4)
        assert snapshot.get_vote(1, ALICE).choice == VoteChoice.YES
        assert snapshot.voter_count(1) == 1

    def test_no_stake_rejected(self):
        _, ledger, _, _ = make_registry()
        snapshot = VoteSnapshot(ledger)
        with pytest.raises(NoStakeError):
            snapshot.record_vote(1, DAVE, "yes", 3)
        assert not snapshot.has_voted(1, DAVE)

    def test_voters_pagination(self):
        _, ledger, _, _ = make_registry()
        snapshot = VoteSnapshot(ledger)
        for voter in (CAROL, ALICE, BOB):
            snapshot.record_vote(1, voter, "yes", 1)
        assert [v.voter for v in snapshot.voters(1, limit=2)] == [ALICE, BOB]
        assert [v.voter for v in snapshot.voters(1, start_after=BOB)] == [CAROL]
        assert snapshot.total_power(1) == Decimal("1000")


# ══════════════════════════════════════════════════════════════════════
#  REGISTRY: CREATE
# ══════════════════════════════════════════════════════════════════════

class TestCreatePoll:

    def test_create_escrows_deposit(self):
        registry, _, token, _ = make_registry()
        poll = open_poll(registry)
        assert poll.id == 1
        assert poll.total_voting_power_at_creation == Decimal("1000")
        assert token.balance_of(CREATOR) == Decimal("900")
        assert token.balance_of(GOV) == Decimal("100")
        assert registry.total_escrowed == Decimal("100")

    def test_heights(self):
        registry, _, _, _ = make_registry()
        poll = open_poll(registry, height=7)
        assert poll.start_height == 7
        assert poll.end_height == 17
        assert poll.executable_height == 22
        assert poll.expiration_height == 42

    def test_custom_voting_period(self):
        registry, _, _, _ = make_registry()
        assert open_poll(registry, voting_period=3).end_height == 3

    def test_ids_are_monotonic(self):
        registry, _, _, _ = make_registry()
        ids = [open_poll(registry).id for _ in range(3)]
        assert ids == [1, 2, 3]

    def test_insufficient_deposit(self):
        registry, _, token, _ = make_registry()
        with pytest.raises(InsufficientDepositError) as exc:
            open_poll(registry, deposit="99")
        assert exc.value.required == Decimal("100")
        assert registry.poll_count == 0
        assert token.balance_of(CREATOR) == Decimal("1000")

    def test_deposit_above_minimum_accepted(self):
        registry, _, _, _ = make_registry()
        assert open_poll(registry, deposit="250").deposit_amount == Decimal("250")

    def test_creator_cannot_pay(self):
        registry, _, _, _ = make_registry()
        with pytest.raises(InsufficientBalanceError):
            open_poll(registry, deposit="5000")
        assert registry.poll_count == 0

    @pytest.mark.parametrize("title,description,link", [
        ("abc", "Long enough description", None),
        ("x" * 65, "Long enough description", None),
        ("Valid title", "abc", None),
        ("Valid title", "Long enough description", "short"),
    ])
    def test_invalid_text(self, title, description, link):
        registry, _, token, _ = make_registry()
        with pytest.raises(InvalidPollError):
            registry.create_poll(CREATOR, Decimal("100"), title, description, 0, link=link)
        assert registry.poll_count == 0
        assert token.balance_of(CREATOR) == Decimal("1000")

    def test_invalid_voting_period(self):
        registry, _, _, _ = make_registry()
        with pytest.raises(InvalidPollError):
            open_poll(registry, voting_period=0)

    def test_messages_stored_in_order(self):
        registry, _, _, _ = make_registry()
        poll = open_poll(registry, messages=[
            CommunitySpend(order=5, recipient=DAVE, amount=Decimal("1")),
            UpdateGovernanceConfig(order=0, params={"quorum": "0.2"}),
        ])
        assert isinstance(poll.messages[0], UpdateGovernanceConfig)

    def test_unknown_poll(self):
        registry, _, _, _ = make_registry()
        with pytest.raises(PollNotFoundError) as exc:
            registry.get(42)
        assert exc.value.poll_id == 42


# ══════════════════════════════════════════════════════════════════════
#  REGISTRY: VOTE
# ══════════════════════════════════════════════════════════════════════

class TestCastVote:

    def test_tallies(self):
        registry, _, _, _ = make_registry()
        poll = open_poll(registry)
        registry.cast_vote(poll.id, ALICE, "yes", 1)
        registry.cast_vote(poll.id, BOB, "no", 2)
        registry.cast_vote(poll.id, CAROL, "abstain", 3)
        assert poll.yes_votes == Decimal("300")
        assert poll.no_votes == Decimal("200")
        assert poll.abstain_votes == Decimal("500")

    def test_double_vote_does_not_change_tally(self):
        registry, _, _, _ = make_registry()
        poll = open_poll(registry)
        registry.cast_vote(poll.id, ALICE, "yes", 1)
        with pytest.raises(AlreadyVotedError):
            registry.cast_vote(poll.id, ALICE, "yes", 2)
        assert poll.yes_votes == Decimal("300")

    def test_vote_at_end_height_rejected(self):
        registry, _, _, _ = make_registry()
        poll = open_poll(registry)
        with pytest.raises(PollNotInProgressError):
            registry.cast_vote(poll.id, ALICE, "yes", poll.end_height)

    def test_vote_on_settled_poll_rejected(self):
        registry, _, _, _ = make_registry()
        poll = open_poll(registry)
        registry.end_poll(poll.id, 10)
        with pytest.raises(PollNotInProgressError):
            registry.cast_vote(poll.id, ALICE, "yes", 5)

    def test_vote_unknown_poll(self):
        registry, _, _, _ = make_registry()
        with pytest.raises(PollNotFoundError):
            registry.cast_vote(9, ALICE, "yes", 1)

    def test_snapshot_survives_unstake(self):
        registry, ledger, _, _ = make_registry()
        poll = open_poll(registry)
        registry.cast_vote(poll.id, ALICE, "yes", 1)
        ledger.unstake(ALICE, Decimal("300"))
        registry.end_poll(poll.id, 10)
        assert poll.yes_votes == Decimal("300")
        assert poll.status == PollStatus.PASSED


# ══════════════════════════════════════════════════════════════════════
#  REGISTRY: SETTLE
# ══════════════════════════════════════════════════════════════════════

class TestEndPoll:

    def test_passes_with_quorum_and_threshold(self):
        registry, _, token, _ = make_registry()
        poll = open_poll(registry)
        registry.cast_vote(poll.id, ALICE, "yes", 1)
        registry.cast_vote(poll.id, BOB, "no", 1)
        registry.end_poll(poll.id, 10)

        assert poll.status == PollStatus.PASSED
        assert poll.settled_height == 10
        assert poll.deposit_settlement == "refunded"
        assert token.balance_of(CREATOR) == Decimal("1000")
        assert registry.total_escrowed == Decimal("0")

    def test_rejected_below_quorum_forfeits(self):
        registry, ledger, token, _ = make_registry()
        poll = open_poll(registry)
        registry.cast_vote(poll.id, BOB, "no", 1)
        registry.end_poll(poll.id, 10)

        assert poll.status == PollStatus.REJECTED
        assert poll.deposit_settlement == "forfeited"
        assert token.balance_of(CREATOR) == Decimal("900")
        assert ledger.index.global_index == Decimal("0.1")
        assert ledger.claimable_reward(ALICE) == Decimal("30")

    def test_rejected_below_threshold(self):
        registry, _, _, _ = make_registry()
        poll = open_poll(registry)
        registry.cast_vote(poll.id, ALICE, "yes", 1)
        registry.cast_vote(poll.id, CAROL, "no", 1)
        registry.end_poll(poll.id, 10)
        assert poll.status == PollStatus.REJECTED

    @pytest.mark.parametrize("quorum,threshold", [
        (Decimal("0"), Decimal("0")),
        (Decimal("0.3"), Decimal("0.5")),
        (Decimal("1"), Decimal("1")),
    ])
    def test_zero_votes_always_rejected(self, quorum, threshold):
        registry, _, _, _ = make_registry(quorum=quorum, threshold=threshold)
        poll = open_poll(registry)
        registry.end_poll(poll.id, 10)
        assert poll.status == PollStatus.REJECTED

    def test_threshold_is_inclusive(self):
        registry, _, _, _ = make_registry(stakes={ALICE: "300", BOB: "300"})
        poll = open_poll(registry)
        registry.cast_vote(poll.id, ALICE, "yes", 1)
        registry.cast_vote(poll.id, BOB, "no", 1)
        registry.end_poll(poll.id, 10)
        assert poll.status == PollStatus.PASSED

    def test_end_before_voting_ends(self):
        registry, _, _, _ = make_registry()
        poll = open_poll(registry)
        with pytest.raises(VotingNotEndedError):
            registry.end_poll(poll.id, 9)
        assert poll.is_in_progress

    def test_end_twice(self):
        registry, _, _, _ = make_registry()
        poll = open_poll(registry)
        registry.end_poll(poll.id, 10)
        with pytest.raises(PollNotInProgressError):
            registry.end_poll(poll.id, 11)

    def test_early_settlement(self):
        registry, _, _, _ = make_registry(early_settlement_threshold=Decimal("0.5"))
        poll = open_poll(registry)
        registry.cast_vote(poll.id, ALICE, "yes", 1)
        assert not registry.can_settle_early(poll)
        registry.cast_vote(poll.id, CAROL, "yes", 2)
        assert registry.can_settle_early(poll)
        registry.end_poll(poll.id, 2)
        assert poll.status == PollStatus.PASSED
        assert "early" in poll.history[-1]["reason"]

    def test_early_settlement_waits_for_uncast_power(self):
        registry, _, token, _ = make_registry(
            stakes={ALICE: "500", BOB: "500"},
            threshold=Decimal("0.6"),
            early_settlement_threshold=Decimal("0.5"),
        )
        poll = open_poll(registry)
        registry.cast_vote(poll.id, ALICE, "yes", 1)
        assert not registry.can_settle_early(poll)
        with pytest.raises(VotingNotEndedError):
            registry.end_poll(poll.id, 1)
        assert poll.is_in_progress

        registry.cast_vote(poll.id, BOB, "no", 2)
        registry.end_poll(poll.id, 2)
        assert poll.status == PollStatus.REJECTED
        assert token.balance_of(CREATOR) == Decimal("900")

    def test_early_settlement_never_skips_quorum(self):
        registry, _, _, _ = make_registry(
            stakes={ALICE: "250", BOB: "750"},
            quorum=Decimal("0.3"),
            early_settlement_threshold=Decimal("0.2"),
        )
        poll = open_poll(registry)
        registry.cast_vote(poll.id, ALICE, "yes", 1)
        assert not registry.can_settle_early(poll)
        with pytest.raises(VotingNotEndedError):
            registry.end_poll(poll.id, 1)
        assert poll.is_in_progress
        assert registry.total_escrowed == Decimal("100")

    def test_early_rejection_once_outcome_is_certain(self):
        registry, _, _, _ = make_registry(early_settlement_threshold=Decimal("0.5"))
        poll = open_poll(registry)
        registry.cast_vote(poll.id, CAROL, "no", 1)
        assert not registry.can_settle_early(poll)
        registry.cast_vote(poll.id, BOB, "no", 2)
        assert registry.can_settle_early(poll)
        registry.end_poll(poll.id, 2)
        assert poll.status == PollStatus.REJECTED
        assert poll.deposit_settlement == "forfeited"

    def test_early_settlement_counts_later_stake(self):
        registry, ledger, _, _ = make_registry(early_settlement_threshold=Decimal("0.5"))
        poll = open_poll(registry)
        ledger.stake(DAVE, Decimal("9000"))
        registry.cast_vote(poll.id, ALICE, "yes", 1)
        registry.cast_vote(poll.id, CAROL, "yes", 1)
        assert registry.uncast_power(poll) == Decimal("9200")
        assert not registry.can_settle_early(poll)

    def test_passed_after_window_expires(self):
        registry, _, token, _ = make_registry()
        poll = open_poll(registry)
        registry.cast_vote(poll.id, CAROL, "yes", 1)
        registry.end_poll(poll.id, poll.expiration_height)
        assert poll.status == PollStatus.EXPIRED
        assert token.balance_of(CREATOR) == Decimal("1000")

    def test_deposit_policy_refund(self):
        registry, _, token, _ = make_registry(deposit_policy=DepositPolicy.REFUND)
        poll = open_poll(registry)
        registry.end_poll(poll.id, 10)
        assert poll.status == PollStatus.REJECTED
        assert poll.deposit_settlement == "refunded"
        assert token.balance_of(CREATOR) == Decimal("1000")

    def test_deposit_policy_forfeit_below_quorum(self):
        registry, _, token, _ = make_registry(deposit_policy=DepositPolicy.FORFEIT_BELOW_QUORUM)
        quorate = open_poll(registry)
        registry.cast_vote(quorate.id, CAROL, "no", 1)
        registry.end_poll(quorate.id, 10)
        assert quorate.deposit_settlement == "refunded"

        empty = open_poll(registry, height=10)
        registry.end_poll(empty.id, 20)
        assert empty.deposit_settlement == "forfeited"
        assert token.balance_of(CREATOR) == Decimal("900")

    def test_forfeit_without_stakers_is_withheld(self):
        registry, ledger, _, _ = make_registry(stakes={})
        poll = open_poll(registry)
        registry.end_poll(poll.id, 10)
        assert poll.deposit_settlement == "forfeited"
        assert ledger.index.withheld_income == Decimal("100")

    def test_poll_opened_without_stakers_can_pass(self):
        registry, ledger, _, _ = make_registry(stakes={})
        poll = open_poll(registry)
        assert poll.total_voting_power_at_creation == Decimal("0")
        ledger.stake(ALICE, Decimal("100"))
        registry.cast_vote(poll.id, ALICE, "yes", 1)
        registry.end_poll(poll.id, 10)
        assert poll.participation == Decimal("1")
        assert poll.status == PollStatus.PASSED

    def test_denominator_frozen_at_creation(self):
        registry, ledger, _, _ = make_registry()
        poll = open_poll(registry)
        ledger.stake(DAVE, Decimal("9000"))
        registry.cast_vote(poll.id, ALICE, "yes", 1)
        registry.end_poll(poll.id, 10)
        assert poll.total_voting_power_at_creation == Decimal("1000")
        assert poll.status == PollStatus.PASSED


# ══════════════════════════════════════════════════════════════════════
#  REGISTRY: EXPIRE / LIST
# ══════════════════════════════════════════════════════════════════════

class TestExpirePoll:

    def _passed(self):
        registry, _, _, _ = make_registry()
        poll = open_poll(registry)
        registry.cast_vote(poll.id, CAROL, "yes", 1)
        registry.end_poll(poll.id, 10)
        return registry, poll

    def test_expire_after_window(self):
        registry, poll = self._passed()
        registry.expire_poll(poll.id, poll.expiration_height)
        assert poll.status == PollStatus.EXPIRED

    def test_expire_while_window_open(self):
        registry, poll = self._passed()
        with pytest.raises(ExecutionWindowOpenError):
            registry.expire_poll(poll.id, poll.expiration_height - 1)
        assert poll.status == PollStatus.PASSED

    def test_expire_rejected_poll(self):
        registry, _, _, _ = make_registry()
        poll = open_poll(registry)
        registry.end_poll(poll.id, 10)
        with pytest.raises(NotPassedError):
            registry.expire_poll(poll.id, 100)
        assert isinstance(NotPassedError(), StateConflictError)


class TestListPolls:

    def test_filters_and_pagination(self):
        registry, _, _, _ = make_registry()
        for _ in range(4):
            open_poll(registry)
        registry.end_poll(2, 10)
        registry.end_poll(4, 10)

        assert [p.id for p in registry.list_polls()] == [1, 2, 3, 4]
        assert [p.id for p in registry.list_polls(limit=2)] == [1, 2]
        assert [p.id for p in registry.list_polls(start_after=2)] == [3, 4]
        assert [p.id for p in registry.list_polls(descending=True, start_after=3)] == [2, 1]
        assert [p.id for p in registry.list_polls(status=PollStatus.REJECTED)] == [2, 4]
        assert [p.id for p in registry.list_polls(status=PollStatus.IN_PROGRESS)] == [1, 3]

    def test_is_active(self):
        registry, _, _, _ = make_registry()
        poll = open_poll(registry)
        assert registry.is_active(poll.id)
        registry.end_poll(poll.id, 10)
        assert not registry.is_active(poll.id)
        assert not registry.is_active(99)

    def test_to_dict(self):
        registry, _, _, _ = make_registry()
        open_poll(registry)
        d = registry.to_dict()
        assert d["pollCount"] == 1
        assert d["byStatus"] == {"IN_PROGRESS": 1}
