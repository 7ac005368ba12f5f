"""
callstate Model — End-to-End Tests

Drives whole models through an in-memory Store:

  A. async login resolves        → start, success, settled record
  B. async login rejects         → start, error, record holds error, caller sees it
  C. reset                       → collection cleared, accessors return EMPTY_RECORD
  D. constant operation          → one success event, no start

Plus custom reducers and selectors, the whole-model reducer, setup
validation and out-of-order completion.
"""

import asyncio

import pytest
from pydantic import ValidationError

from callstate import EMPTY_RECORD, CallRecord, Deferred, Model, ModelConfig, Store, create_model, operation
from callstate.types import DEFAULT_TYPE_PREFIX

CREDS = {"username": "alice", "password": "secret"}
TOKEN = {"token": "12345"}


def user_model(**overrides):
    async def login(creds):
        if creds.get("password") == "fail":
            raise ValueError("wrong password")
        if creds.get("username"):
            return f"{creds['username']}, {creds['password']}"
        return TOKEN

    def sync_login(creds):
        return TOKEN

    config = {
        "name": "user",
        "state_to_model": lambda state: state,
        "methods": {"login": login, "sync_login": sync_login},
    }
    config.update(overrides)
    return create_model(**config)


# ============================================================================
# Scenario A: async success
# ============================================================================


class TestAsyncSuccess:
    @pytest.mark.asyncio
    async def test_events_and_record(self, frozen_clock):
        user = user_model()
        store = Store(user.reducer)

        pending = store.dispatch(user.login(CREDS))
        assert isinstance(pending, Deferred)
        assert store.get_state()["login"][0].requesting is True

        assert await pending == "alice, secret"

        assert [e.type for e in store.events] == [
            f"{DEFAULT_TYPE_PREFIX}/USER/LOGIN",
            f"{DEFAULT_TYPE_PREFIX}/USER/LOGIN_SUCCESS",
        ]
        assert store.events[1].payload["params"] == (CREDS,)
        assert store.events[1].payload["result"] == "alice, secret"

        assert store.get_state()["login"] == (
            CallRecord(
                params=(CREDS,),
                result="alice, secret",
                error=None,
                requesting=False,
                requested=True,
                updated_at=frozen_clock,
            ),
        )

    @pytest.mark.asyncio
    async def test_selectors_follow_state(self, frozen_clock):
        user = user_model()
        store = Store(user.reducer)

        assert user.selectors(store.get_state()).login(CREDS) is EMPTY_RECORD
        assert user.selectors(store.get_state()).login_result(CREDS) is None

        await store.dispatch(user.login(CREDS))

        select = user.selectors(store.get_state())
        assert select.login(CREDS).requested is True
        assert select.login_result(CREDS) == "alice, secret"

    @pytest.mark.asyncio
    async def test_second_call_keeps_result_while_in_flight(self):
        user = user_model()
        store = Store(user.reducer)
        await store.dispatch(user.login(CREDS))

        pending = store.dispatch(user.login(CREDS))
        record = user.selectors(store.get_state()).login(CREDS)
        assert record.requesting is True
        assert record.result == "alice, secret"

        await pending
        assert len(store.get_state()["login"]) == 1

    @pytest.mark.asyncio
    async def test_dispatch_without_await_settles(self, frozen_clock):
        calls = []

        async def ping(host):
            calls.append(host)
            return "pong"

        model = create_model(name="net", state_to_model=lambda state: state, methods=[ping])
        store = Store(model.reducer)

        store.dispatch(model.ping("h1"))
        await asyncio.sleep(0)

        assert calls == ["h1"]
        assert store.get_state()["ping"] == (
            CallRecord(params=("h1",), result="pong", requested=True, updated_at=frozen_clock),
        )

    def test_invocation_metadata(self):
        user = user_model()
        invocation = user.login(CREDS)
        assert invocation.is_async is True
        assert invocation.action_name == "login"
        assert invocation.action_params == (CREDS,)
        assert invocation.model_name == "user"


# ============================================================================
# Scenario B: async failure
# ============================================================================


class TestAsyncFailure:
    @pytest.mark.asyncio
    async def test_error_recorded_and_raised(self, frozen_clock):
        user = user_model()
        store = Store(user.reducer)
        await store.dispatch(user.login({"password": "123"}))
        store.clear_events()

        with pytest.raises(ValueError, match="wrong password") as excinfo:
            await store.dispatch(user.login({"password": "fail"}))

        assert [e.type for e in store.events] == [
            f"{DEFAULT_TYPE_PREFIX}/USER/LOGIN",
            f"{DEFAULT_TYPE_PREFIX}/USER/LOGIN_ERROR",
        ]
        assert store.events[1].payload["error"] is excinfo.value

        assert store.get_state()["login"] == (
            CallRecord(params=({"password": "123"},), result=TOKEN, requested=True, updated_at=frozen_clock),
            CallRecord(
                params=({"password": "fail"},),
                result=None,
                error=excinfo.value,
                requesting=False,
                requested=True,
                updated_at=frozen_clock,
            ),
        )

        select = user.selectors(store.get_state())
        assert select.login_result({"password": "123"}) == TOKEN
        assert select.login_result({"password": "fail"}) is None
        assert select.login({"password": "fail"}).error is excinfo.value


# ============================================================================
# Scenario C: reset
# ============================================================================


class TestReset:
    @pytest.mark.asyncio
    async def test_reset_clears_one_operation(self, frozen_clock):
        user = user_model()
        store = Store(user.reducer)

        store.dispatch(user.sync_login({"password": "123"}))
        assert store.get_state() == {
            "login": (),
            "sync_login": (
                CallRecord(params=({"password": "123"},), result=TOKEN, requested=True, updated_at=frozen_clock),
            ),
        }

        store.dispatch(user.sync_login_reset())
        assert store.get_state() == {"login": (), "sync_login": ()}

        await store.dispatch(user.login({"password": "456"}))
        assert len(store.get_state()["login"]) == 1

        store.dispatch(user.login_reset())
        assert store.get_state() == {"login": (), "sync_login": ()}
        assert user.selectors(store.get_state()).login({"password": "456"}) is EMPTY_RECORD

    def test_reset_event_type(self):
        user = user_model()
        assert user.login_reset().type == f"{DEFAULT_TYPE_PREFIX}/USER/LOGIN_RESET"

    def test_modify(self):
        user = user_model()
        store = Store(user.reducer)
        store.dispatch(user.sync_login_modify({"password": "1"})({"token": "manual"}))
        assert user.selectors(store.get_state()).sync_login_result({"password": "1"}) == {"token": "manual"}


# ============================================================================
# Scenario D: constant operation
# ============================================================================


class TestConstant:
    def test_single_settled_event(self, frozen_clock):
        counter = create_model(name="counter", state_to_model=lambda state: state, methods=["increase"])
        store = Store(counter.reducer)

        assert store.dispatch(counter.increase()) == "increase"
        assert [e.type for e in store.events] == [f"{DEFAULT_TYPE_PREFIX}/COUNTER/INCREASE_SUCCESS"]
        assert store.get_state()["increase"] == (
            CallRecord(params=(), result="increase", requesting=False, requested=True, updated_at=frozen_clock),
        )

    def test_sync_operation_never_requesting(self):
        user = user_model()
        store = Store(user.reducer)
        store.dispatch(user.sync_login({"password": "1"}))
        record = user.selectors(store.get_state()).sync_login({"password": "1"})
        assert record.requesting is False
        assert record.requested is True


# ============================================================================
# Custom reducers and selectors
# ============================================================================


def login_reducer(types):
    def reducer(state=None, event=None):
        if state is None:
            state = {}
        payload = getattr(event, "payload", {})
        kind = getattr(event, "type", None)
        if kind == types.start:
            return {"requesting": True}
        if kind == types.success:
            return {"requesting": False, "result": payload.get("result")}
        if kind == types.failure:
            return {"requesting": False, "error": payload.get("error")}
        return state

    return reducer


class TestCustomReducer:
    @pytest.mark.asyncio
    async def test_per_operation_reducer_and_selector(self):
        async def login(creds):
            return TOKEN

        user = create_model(
            name="user",
            state_to_model=lambda state: state,
            methods={"login": login},
            reducers={"login": login_reducer},
            selectors={"token": lambda ctx: ctx.model_state["login"]["result"]["token"]},
        )
        store = Store(user.reducer)

        pending = store.dispatch(user.login({"password": "123"}))
        assert store.get_state() == {"login": {"requesting": True}}
        assert user.selectors(store.get_state()).login({"password": "anything"}) == {"requesting": True}

        assert await pending == TOKEN
        state = store.get_state()
        assert state == {"login": {"requesting": False, "result": TOKEN}}

        select = user.selectors(state)
        assert select.login() == {"requesting": False, "result": TOKEN}
        assert select.login_result({"password": "other"}) == TOKEN
        assert select.token() == "12345"

    def test_custom_selector_for_operation(self):
        user = create_model(
            name="user",
            state_to_model=lambda state: state,
            methods=["ping"],
            selectors={"ping": lambda ctx, *args: {"result": len(ctx.method_state), "args": args}},
        )
        store = Store(user.reducer)
        store.dispatch(user.ping())
        select = user.selectors(store.get_state())
        assert select.ping(1) == {"result": 1, "args": (1,)}
        assert select.ping_result() == 1


class TestWholeModelReducer:
    INITIAL = {"started": False, "count": 0, "timer_id": None}

    def timer(self):
        def start(*, ctx):
            for _ in range(3):
                ctx.ops.increase()
            return "timer-1"

        def stop(timer_id):
            if not timer_id:
                raise ValueError("timer_id required")

        def reducer(types):
            def timer_reducer(state=None, event=None):
                if state is None:
                    state = dict(self.INITIAL)
                kind = getattr(event, "type", None)
                if kind == types["START"]:
                    return {**state, "started": True, "timer_id": event.payload["result"]}
                if kind == types["INCREASE"]:
                    return {**state, "count": state["count"] + 1}
                if kind == types["STOP"]:
                    return {**state, "started": False, "timer_id": None}
                return state

            return timer_reducer

        return create_model(
            name="timer",
            state_to_model=lambda state: state,
            methods=[start, "increase", stop],
            reducer=reducer,
            selectors={"timer_id": lambda ctx: ctx.model_state["model"]["timer_id"]},
        )

    def test_siblings_and_model_reducer(self):
        timer = self.timer()
        store = Store(timer.reducer)

        assert store.get_state()["model"] == self.INITIAL

        store.dispatch(timer.start())
        assert store.get_state()["model"] == {"started": True, "count": 3, "timer_id": "timer-1"}
        assert [e.type for e in store.events] == [
            f"{DEFAULT_TYPE_PREFIX}/TIMER/INCREASE_SUCCESS",
            f"{DEFAULT_TYPE_PREFIX}/TIMER/INCREASE_SUCCESS",
            f"{DEFAULT_TYPE_PREFIX}/TIMER/INCREASE_SUCCESS",
            f"{DEFAULT_TYPE_PREFIX}/TIMER/START_SUCCESS",
        ]

        timer_id = timer.selectors(store.get_state()).timer_id()
        store.dispatch(timer.stop(timer_id))
        assert store.get_state()["model"]["started"] is False
        assert timer.selectors(store.get_state()).stop(timer_id).requested is True

    def test_stop_without_id_fails(self):
        timer = self.timer()
        store = Store(timer.reducer)
        with pytest.raises(ValueError, match="timer_id required"):
            store.dispatch(timer.stop(None))
        assert timer.selectors(store.get_state()).stop(None).error is not None

    def test_operation_named_model_keeps_its_slot(self):
        model = create_model(name="m", methods=["model"], reducer=lambda types: lambda state=None, event=None: 0)
        assert [c.reason for c in model.conflicts] == ["reducer key taken"]


# ============================================================================
# Setup
# ============================================================================


class TestSetup:
    def test_random_name(self):
        model = create_model(methods=["a"])
        assert model.name.startswith("model_")
        assert create_model(methods=["a"]).name != model.name

    def test_config_object_and_overrides(self):
        config = ModelConfig(name="user", methods=["a"])
        model = create_model(config, methods=["b"])
        assert isinstance(model, Model)
        assert list(model.types) == ["b"]

    def test_mapping_config(self):
        assert create_model({"name": "user", "methods": ["a"]}).name == "user"

    def test_unnamed_operations_dropped(self):
        model = create_model(name="m", methods=[lambda: 1, "", "kept"])
        assert list(model.types) == ["kept"]

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"name": "   "},
            {"unknown": 1},
            {"mixins": [42]},
            {"mixins": [{"methods": {}}]},
            {"reducers": {"login": "not callable"}},
        ],
    )
    def test_invalid_config(self, kwargs):
        with pytest.raises(ValidationError):
            create_model(**kwargs)

    def test_custom_prefix(self):
        model = create_model(name="user", methods=["a"], type_prefix="@@app")
        assert model.types["a"].success == "@@app/USER/A_SUCCESS"
        assert model.constants["A"] == "@@app/USER/A_SUCCESS"
        assert model.constants["A_START"] == "@@app/USER/A"

    def test_prefix_from_settings(self, monkeypatch):
        monkeypatch.setattr("callstate.config.settings.TYPE_PREFIX", "@@env")
        assert create_model(name="user", methods=["a"]).types["a"].start == "@@env/USER/A"

    def test_unknown_action(self):
        model = create_model(name="user", methods=["a"])
        with pytest.raises(AttributeError, match="has no action 'b'"):
            model.b

    def test_deferred_declaration(self):
        model = create_model(name="user", methods=[operation(lambda: 1, name="load", deferred=True)])
        assert model.load().is_async is True


# ============================================================================
# Out-of-order completion
# ============================================================================


class TestOutOfOrder:
    async def race(self, strict):
        gates: list[asyncio.Event] = []

        async def fetch(key):
            n = len(gates)
            gate = asyncio.Event()
            gates.append(gate)
            await gate.wait()
            return f"call-{n}"

        model = create_model(name="feed", state_to_model=lambda state: state, methods=[fetch], strict_sequence=strict)
        store = Store(model.reducer)

        first = store.dispatch(model.fetch("k"))
        second = store.dispatch(model.fetch("k"))
        while len(gates) < 2:
            await asyncio.sleep(0)

        gates[1].set()
        assert await second == "call-1"
        gates[0].set()
        assert await first == "call-0"

        records = store.get_state()["fetch"]
        assert len(records) == 1
        return records[0]

    @pytest.mark.asyncio
    async def test_last_event_wins_by_default(self):
        record = await self.race(strict=False)
        assert record.result == "call-0"

    @pytest.mark.asyncio
    async def test_strict_sequence_keeps_newest_call(self):
        record = await self.race(strict=True)
        assert record.result == "call-1"
        assert record.requested is True
