"""测试：Schedule 实体

业务背景：
- Schedule 是一个异常场景的固定交错调度
- 构造时校验：参与者唯一、步骤只引用已声明的参与者、每个参与者恰好结束一次
- verification 必须是独立事务的一次读
"""

import pytest

from isolation_lab.domain.entities import schedule as s
from isolation_lab.domain.entities.schedule import (
    Differs,
    EqualsValue,
    Participant,
    Schedule,
    StepKind,
)
from isolation_lab.domain.exceptions import ScheduleError
from isolation_lab.domain.value_objects.isolation_level import IsolationLevel


def _schedule(**overrides):
    fields = {
        "name": "sample",
        "description": "two reads around an update",
        "participants": (
            Participant("tx1", IsolationLevel.READ_COMMITTED),
            Participant("tx2", IsolationLevel.READ_COMMITTED),
        ),
        "steps": (
            s.read_balance("tx1", 1, key="first"),
            s.update_balance("tx2", 1, 5),
            s.commit("tx2"),
            s.read_balance("tx1", 1, key="second"),
            s.commit("tx1"),
        ),
        "verification": s.read_balance("tx3", 1, key="verified"),
        "check": Differs("first", "second"),
    }
    fields.update(overrides)
    return Schedule(**fields)


class TestStep:
    def test_factories_build_expected_kinds(self):
        assert s.read_count("tx1").kind is StepKind.READ_COUNT
        assert s.read_balance("tx1", 1).kind is StepKind.READ_BALANCE
        assert s.update_balance("tx1", 1, 10).kind is StepKind.UPDATE_BALANCE
        assert s.insert("tx1", 3, 1000).kind is StepKind.INSERT
        assert s.delete("tx1", 3).kind is StepKind.DELETE
        assert s.commit("tx1").kind is StepKind.COMMIT
        assert s.rollback("tx1").kind is StepKind.ROLLBACK

    @pytest.mark.parametrize(
        ("step", "expected"),
        [
            (s.read_count("tx1"), "tx1 read-count"),
            (s.read_balance("tx1", 1), "tx1 read-balance(1)"),
            (s.update_balance("tx2", 1, 10), "tx2 update-balance(1, 10)"),
            (s.insert("tx2", 3, 1000), "tx2 insert(3, 1000)"),
            (s.delete("tx2", 3), "tx2 delete(3)"),
            (s.commit("tx2"), "tx2 commit"),
            (s.rollback("tx1"), "tx1 rollback"),
        ],
    )
    def test_describe(self, step, expected):
        assert step.describe() == expected

    def test_write_step_cannot_record_observation(self):
        """测试：只有读步骤可以记录观测值"""
        with pytest.raises(ScheduleError, match="only read steps"):
            s.Step(tx="tx1", kind=StepKind.UPDATE_BALANCE, account_id=1, value=1, key="x")

    def test_update_requires_value(self):
        with pytest.raises(ScheduleError, match="requires value"):
            s.Step(tx="tx1", kind=StepKind.UPDATE_BALANCE, account_id=1)

    def test_read_balance_requires_account(self):
        with pytest.raises(ScheduleError, match="requires account_id"):
            s.Step(tx="tx1", kind=StepKind.READ_BALANCE)

    def test_empty_tx_label_is_rejected(self):
        with pytest.raises(ScheduleError, match="must not be empty"):
            s.commit(" ")


class TestScheduleValidation:
    """测试：Schedule 构造时的校验"""

    def test_valid_schedule_should_be_created(self):
        schedule = _schedule()

        assert schedule.name == "sample"
        assert len(schedule.steps) == 5
        assert schedule.participant("tx2").isolation_level is IsolationLevel.READ_COMMITTED

    def test_step_with_undeclared_tx_should_raise_error(self):
        with pytest.raises(ScheduleError, match="undeclared tx tx9"):
            _schedule(steps=(s.commit("tx1"), s.commit("tx2"), s.read_count("tx9")))

    def test_step_after_commit_should_raise_error(self):
        """测试：参与者提交后不能再有步骤"""
        with pytest.raises(ScheduleError, match="follows tx1's terminal step"):
            _schedule(
                steps=(
                    s.commit("tx1"),
                    s.read_balance("tx1", 1, key="first"),
                    s.commit("tx2"),
                )
            )

    def test_participant_without_terminal_step_should_raise_error(self):
        with pytest.raises(ScheduleError, match="never committed or rolled back"):
            _schedule(
                steps=(
                    s.read_balance("tx1", 1, key="first"),
                    s.read_balance("tx1", 1, key="second"),
                    s.commit("tx1"),
                )
            )

    def test_duplicate_participants_should_raise_error(self):
        with pytest.raises(ScheduleError, match="duplicate participant"):
            _schedule(participants=(Participant("tx1"), Participant("tx1")))

    def test_no_participants_should_raise_error(self):
        with pytest.raises(ScheduleError, match="at least one participant"):
            _schedule(participants=(), steps=())

    def test_verification_must_be_read(self):
        with pytest.raises(ScheduleError, match="verification must be a read"):
            _schedule(verification=s.commit("tx3"))

    def test_verification_must_use_independent_tx(self):
        with pytest.raises(ScheduleError, match="must not be a participant"):
            _schedule(verification=s.read_balance("tx1", 1, key="verified"))

    def test_duplicate_observation_keys_should_raise_error(self):
        with pytest.raises(ScheduleError, match="duplicate observation keys"):
            _schedule(verification=s.read_balance("tx3", 1, key="first"))

    def test_check_with_unknown_key_should_raise_error(self):
        with pytest.raises(ScheduleError, match="unknown keys"):
            _schedule(check=EqualsValue("missing", 1))

    def test_unknown_participant_lookup_should_raise_error(self):
        with pytest.raises(ScheduleError, match="no participant tx5"):
            _schedule().participant("tx5")


class TestScheduleIsolationOverride:
    def test_with_isolation_level_pins_every_participant(self):
        original = _schedule()

        pinned = original.with_isolation_level(IsolationLevel.SERIALIZABLE)

        assert {p.isolation_level for p in pinned.participants} == {IsolationLevel.SERIALIZABLE}
        assert pinned.steps == original.steps
        assert original.participant("tx1").isolation_level is IsolationLevel.READ_COMMITTED, (
            "原调度不应被修改"
        )


class TestAnomalyChecks:
    def test_differs(self):
        check = Differs("a", "b")

        assert check.evaluate({"a": 1, "b": 2}) is True
        assert check.evaluate({"a": 1, "b": 1}) is False
        assert check.evaluate({"a": 1}) is None

    def test_equals_value(self):
        check = EqualsValue("verified", 10)

        assert check.evaluate({"verified": 10}) is True
        assert check.evaluate({"verified": 100_000}) is False
        assert check.evaluate({}) is None
