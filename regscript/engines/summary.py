"""
Plain-text preview of what a script will do (CLI ``--dry-run`` banner and
the interactive go/no-go prompt).
"""

import re
from collections import Counter

from regscript.models import Script, Step

# Rough call counters for imperative programs
_IMPERATIVE_PATTERNS = (
    ("wallet creation", re.compile(r"\bcreate_wallet\(")),
    ("block generation", re.compile(r"\bmine_blocks\(|\bgenerate_to_address\(")),
    ("transaction creation", re.compile(r"\bcreate_transaction\(|\bsend_to_address\(")),
    ("transaction signing", re.compile(r"\bsign_transaction\(|\bwallet_process_psbt\(")),
    ("transaction broadcast", re.compile(r"\bbroadcast_transaction\(|\bsend_raw_transaction\(")),
)

_IMPERATIVE_HINTS = (
    ("Multisig wallet operations", ("multisig", "quorum")),
    ("Replace-by-fee (RBF) operations", ("replace_transaction", "bump_fee", "rbf")),
    ("Child-pays-for-parent (CPFP) operations", ("cpfp", "child pays for parent")),
)


def _humanize(action: str) -> str:
    return action.replace("_", " ").lower()


def _truncate(text: str, length: int) -> str:
    return text if len(text) <= length else text[:length] + "..."


def _step_detail(step: Step) -> list[str]:
    p = step.params
    action = step.action
    if action == "CREATE_WALLET":
        return [f'Create wallet "{p.get("name")}"']
    if action == "MINE_BLOCKS":
        target = f'to wallet "{p["toWallet"]}"' if p.get("toWallet") else f'to address "{p.get("toAddress")}"'
        return [f"Mine {p.get('count')} blocks {target}"]
    if action == "CREATE_TRANSACTION":
        parts = []
        for output in p.get("outputs") or []:
            if isinstance(output, dict):
                for address, amount in output.items():
                    parts.append(f"{amount} BTC to {_truncate(str(address), 12)}")
        lines = [f'Send from "{p.get("fromWallet")}": {", ".join(parts)}']
        if p.get("feeRate"):
            lines.append(f"With fee rate: {p['feeRate']} sat/vB")
        if p.get("rbf"):
            lines.append("Enabled for RBF (Replace-By-Fee)")
        return lines
    if action == "SIGN_TRANSACTION":
        return [f'Sign {p.get("txId")} with wallet "{p.get("signerWallet")}"']
    if action == "BROADCAST_TRANSACTION":
        return [f"Broadcast transaction {p.get('txId')}"]
    if action == "REPLACE_TRANSACTION":
        lines = [f"Replace transaction {p.get('txId')}"]
        if p.get("newFeeRate"):
            lines.append(f"With new fee rate: {p['newFeeRate']} sat/vB")
        return lines
    if action == "CREATE_MULTISIG":
        return [
            f"Create {p.get('requiredSigners')}-of-{p.get('totalSigners')} multisig wallet \"{p.get('name')}\"",
            f"Using address type: {p.get('addressType') or 'P2WSH'}",
        ]
    if action == "WAIT":
        if p.get("forTransaction"):
            return [f"Wait up to {p.get('milliseconds')} ms for {p['forTransaction']} to reach the mempool"]
        if p.get("forWallet"):
            return [f"Wait up to {p.get('milliseconds')} ms for {p['forWallet']} to hold {p.get('minBalance')} BTC"]
        return [f"Wait for {p.get('milliseconds')} ms"]
    if action == "GET_BALANCE":
        return [f'Read balance of "{p.get("wallet")}"']
    if action == "ASSERT":
        condition = p.get("condition")
        return [
            f"Verify: {condition if isinstance(condition, str) else 'condition is met'}",
            f'Error if not: "{p.get("message")}"',
        ]
    if action == "CUSTOM":
        code = str(p.get("code") or "")
        first = code.strip().split("\n")[0] if code.strip() else ""
        return ["Execute custom code", f"Code snippet: {_truncate(first, 50)}"]
    return []


def _declarative_summary(script: Script) -> str:
    lines = [
        f"Script: {script.name}",
        script.description or "No description provided",
        "",
        f"Version: {script.version}",
        f"Contains {len(script.steps)} steps:",
        "",
    ]
    counts = Counter(step.action for step in script.steps)
    for action, count in counts.items():
        lines.append(f"- {count} {_humanize(action)} operations")
    lines += ["", "Detailed step list:"]
    for i, step in enumerate(script.steps, start=1):
        lines.append(f"{i}. {step.description or 'Execute ' + _humanize(step.action)}")
        lines.extend(f"   {detail}" for detail in _step_detail(step))
    return "\n".join(lines) + "\n"


def _imperative_summary(script: Script) -> str:
    source = script.source or ""
    lines = [
        f"Script: {script.name}",
        script.description or "No description provided",
        "",
        f"Version: {script.version}",
        "This script includes approximately:",
    ]
    for label, pattern in _IMPERATIVE_PATTERNS:
        lines.append(f"- {len(pattern.findall(source))} {label} operations")
    lowered = source.lower()
    for label, needles in _IMPERATIVE_HINTS:
        if any(n in lowered for n in needles):
            lines.append(f"- {label}")
    return "\n".join(lines) + "\n"


def generate_script_summary(script: Script) -> str:
    if script.is_declarative:
        return _declarative_summary(script)
    return _imperative_summary(script)
