"""
Action registry for declarative scripts.

ACTION_REGISTRY maps an action name to its ActionSpec: the params every step
must carry, a handler ``(params, context) -> output`` and a static validator
``(params) -> list[str]`` run before anything executes. Handlers talk to the
node only through the context's bound services, so dry-run behaviour comes
from ``context.options`` and never from the interpreter.
"""

import logging
from collections.abc import Callable
from typing import Any, NamedTuple

from regscript.models import TxRecord
from regscript.services.coordinator import ADDRESS_TYPES

from .params import evaluate_condition, is_template
from .script import ProgramRunner, compile_script

logger = logging.getLogger(__name__)

DEFAULT_WAIT_TIMEOUT_MS = 30000


class ActionSpec(NamedTuple):
    name: str
    required_params: frozenset[str]
    handler: Callable[[dict[str, Any], Any], Any]
    validate: Callable[[dict[str, Any]], list[str]]


# ---------------------------------------------------------------------------
# Param shape checks (templated values are only checked after rendering)
# ---------------------------------------------------------------------------


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _check_positive_int(params: dict[str, Any], key: str) -> list[str]:
    value = params.get(key)
    if value is None or is_template(value):
        return []
    if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
        return [f"{key} must be a positive integer"]
    return []


def _check_number(params: dict[str, Any], key: str, *, positive: bool = False) -> list[str]:
    value = params.get(key)
    if value is None or is_template(value):
        return []
    if not _is_number(value) or value < 0 or (positive and value == 0):
        return [f"{key} must be a {'positive' if positive else 'non-negative'} number"]
    return []


def _check_outputs(outputs: Any) -> list[str]:
    if outputs is None or is_template(outputs):
        return []
    if not isinstance(outputs, list) or not outputs:
        return ["outputs must be a non-empty list"]
    errors = []
    for i, output in enumerate(outputs, start=1):
        if not isinstance(output, dict) or len(output) != 1:
            errors.append(f"output #{i} must be an object with a single address: amount pair")
            continue
        address, amount = next(iter(output.items()))
        if not isinstance(address, str) or not address.strip():
            errors.append(f"output #{i} is missing an address")
        if not is_template(amount) and (not _is_number(amount) or amount <= 0):
            errors.append(f"output #{i} requires a positive amount")
    return errors


def _no_checks(params: dict[str, Any]) -> list[str]:
    return []


def _validate_mine_blocks(params: dict[str, Any]) -> list[str]:
    return _check_positive_int(params, "count")


def _validate_create_transaction(params: dict[str, Any]) -> list[str]:
    return _check_outputs(params.get("outputs")) + _check_number(params, "feeRate")


def _validate_replace_transaction(params: dict[str, Any]) -> list[str]:
    return _check_number(params, "newFeeRate", positive=True)


def _validate_create_multisig(params: dict[str, Any]) -> list[str]:
    errors = _check_positive_int(params, "requiredSigners") + _check_positive_int(params, "totalSigners")
    required, total = params.get("requiredSigners"), params.get("totalSigners")
    if not errors and isinstance(required, int) and isinstance(total, int) and required > total:
        errors.append("requiredSigners cannot be greater than totalSigners")
    address_type = params.get("addressType")
    if address_type is not None and not is_template(address_type) and address_type not in ADDRESS_TYPES:
        errors.append(f"addressType must be one of: {', '.join(ADDRESS_TYPES)}")
    return errors


def _validate_wait(params: dict[str, Any]) -> list[str]:
    errors = _check_number(params, "milliseconds")
    if "minBalance" in params and "forWallet" not in params:
        errors.append("minBalance requires forWallet")
    if "forWallet" in params and "minBalance" not in params:
        errors.append("forWallet requires minBalance")
    return errors + _check_number(params, "minBalance")


def _validate_assert(params: dict[str, Any]) -> list[str]:
    condition = params.get("condition")
    if condition is not None and not isinstance(condition, (str, bool)):
        return ["condition must be a string or boolean"]
    return []


def _validate_custom(params: dict[str, Any]) -> list[str]:
    code = params.get("code")
    if code is None:
        return []
    if not isinstance(code, str) or not code.strip():
        return ["code must be a non-empty string"]
    try:
        compile_script(code, "<custom>")
    except SyntaxError as e:
        return [f"code has a syntax error: {e}"]
    return []


# ---------------------------------------------------------------------------
# Handlers
# ---------------------------------------------------------------------------


def _tx_output(record: TxRecord) -> dict[str, Any]:
    return record.model_dump(mode="json")


def create_wallet(params: dict[str, Any], context: Any) -> dict[str, Any]:
    options = params.get("options") or {}
    ref = context.wallet_service.create_wallet(
        params["name"],
        disable_private_keys=bool(params.get("disablePrivateKeys", options.get("disablePrivateKeys", False))),
        blank=bool(params.get("blank", options.get("blank", False))),
        descriptors=bool(params.get("descriptors", options.get("descriptorWallet", True))),
    )
    return ref.model_dump()


def mine_blocks(params: dict[str, Any], context: Any) -> dict[str, Any]:
    result = context.wallet_service.mine_blocks(
        int(params["count"]),
        to_wallet=params.get("toWallet"),
        to_address=params.get("toAddress"),
    )
    if isinstance(result, dict):
        return result
    return {"count": len(result), "to": params.get("toWallet") or params.get("toAddress"), "blocks": result}


def create_transaction(params: dict[str, Any], context: Any) -> dict[str, Any]:
    ws = context.wallet_service
    outputs = [
        {ws.resolve_address(address): float(amount) for address, amount in output.items()}
        for output in params["outputs"]
    ]
    record = context.transaction_service.create_transaction(
        params["fromWallet"],
        outputs,
        tx_id=params.get("txId"),
        fee_rate=params.get("feeRate"),
        rbf=bool(params.get("rbf", False)),
        include_unsafe=bool(params.get("includeUnsafe", False)),
    )
    return _tx_output(record)


def sign_transaction(params: dict[str, Any], context: Any) -> dict[str, Any]:
    record = context.transaction_service.sign_transaction(params["txId"], params["signerWallet"])
    return _tx_output(record)


def broadcast_transaction(params: dict[str, Any], context: Any) -> dict[str, Any]:
    record = context.transaction_service.broadcast_transaction(params["txId"])
    return _tx_output(record)


def replace_transaction(params: dict[str, Any], context: Any) -> dict[str, Any]:
    record = context.transaction_service.replace_transaction(
        params["txId"],
        new_fee_rate=params.get("newFeeRate"),
        new_tx_id=params.get("newTxId"),
    )
    return _tx_output(record)


def create_multisig(params: dict[str, Any], context: Any) -> dict[str, Any]:
    ref = context.coordinator_service.create_multisig_wallet(
        params["name"],
        int(params["requiredSigners"]),
        int(params["totalSigners"]),
        address_type=params.get("addressType") or "P2WSH",
    )
    return ref.model_dump()


def wait(params: dict[str, Any], context: Any) -> dict[str, Any]:
    """
    Without a condition this is a plain delay. With ``forTransaction`` or
    ``forWallet``/``minBalance`` it polls until the condition holds and
    ``milliseconds`` is the timeout.
    """
    milliseconds = int(params["milliseconds"])
    if params.get("forTransaction"):
        tx_id = params["forTransaction"]
        context.transaction_service.wait_for_mempool(tx_id, timeout_ms=milliseconds or DEFAULT_WAIT_TIMEOUT_MS)
        return {"transaction": tx_id, "in_mempool": True, "simulated": context.dry_run}
    if params.get("forWallet"):
        wallet = params["forWallet"]
        balance = context.wallet_service.wait_for_balance(
            wallet, float(params["minBalance"]), timeout_ms=milliseconds or DEFAULT_WAIT_TIMEOUT_MS
        )
        return {"wallet": wallet, "balance": balance, "simulated": context.dry_run}
    context.wait(milliseconds)
    return {"waited_ms": 0 if context.dry_run else milliseconds, "simulated": context.dry_run}


def get_balance(params: dict[str, Any], context: Any) -> float:
    return context.wallet_service.get_balance(params["wallet"])


def assert_condition(params: dict[str, Any], context: Any) -> bool:
    if not evaluate_condition(params["condition"], context.template_variables()):
        raise AssertionError(params["message"])
    return True


def custom(params: dict[str, Any], context: Any) -> Any:
    output = ProgramRunner().run(
        params["code"],
        context,
        filename="<custom>",
        extra_bindings={"variables": context.variables},
    )
    context.check_registries()
    return output


def _spec(
    name: str,
    required: tuple[str, ...],
    handler: Callable[[dict[str, Any], Any], Any],
    validate: Callable[[dict[str, Any]], list[str]] = _no_checks,
) -> ActionSpec:
    return ActionSpec(name, frozenset(required), handler, validate)


ACTION_REGISTRY: dict[str, ActionSpec] = {
    spec.name: spec
    for spec in (
        _spec("CREATE_WALLET", ("name",), create_wallet),
        _spec("MINE_BLOCKS", ("count", "toWallet"), mine_blocks, _validate_mine_blocks),
        _spec("CREATE_TRANSACTION", ("fromWallet", "outputs"), create_transaction, _validate_create_transaction),
        _spec("SIGN_TRANSACTION", ("txId", "signerWallet"), sign_transaction),
        _spec("BROADCAST_TRANSACTION", ("txId",), broadcast_transaction),
        _spec("REPLACE_TRANSACTION", ("txId",), replace_transaction, _validate_replace_transaction),
        _spec(
            "CREATE_MULTISIG",
            ("name", "requiredSigners", "totalSigners"),
            create_multisig,
            _validate_create_multisig,
        ),
        _spec("WAIT", ("milliseconds",), wait, _validate_wait),
        _spec("GET_BALANCE", ("wallet",), get_balance),
        _spec("ASSERT", ("condition", "message"), assert_condition, _validate_assert),
        _spec("CUSTOM", ("code",), custom, _validate_custom),
    )
}


def get_action(name: str) -> ActionSpec | None:
    return ACTION_REGISTRY.get(name)
