"""
@name Caravan Health Privacy Test
@description Creates three 2-of-3 multisig wallets with good (fresh addresses, single-input spends, varied amounts), moderate (some consolidation) and bad (address reuse, UTXO mixing, round amounts) privacy patterns for wallet health analysis.
@version 1.0.0
"""

BASE_NAME = "health_test"
LEVELS = ["good", "moderate", "bad"]
TRANSACTIONS_PER_WALLET = 15
REQUIRED_SIGNERS = 2
TOTAL_SIGNERS = 3
ADDRESS_TYPE = "P2WSH"

SMALL = 0.001
MEDIUM = 0.01
LARGE = 0.1
ROUND_AMOUNTS = [0.01, 0.05, 0.1, 0.001, 0.005]
REUSED_ADDRESSES = 3

SIGNER_FUNDING_BLOCKS = 10
MATURITY_BLOCKS = 101
CONFIRMATION_BLOCKS = 1


def spread(i):
    """Deterministic value in [0, 1) that varies from one transaction to the next."""
    return (i * 37 % 100) / 100.0


def create_level_wallet(level):
    name = "%s_%s" % (BASE_NAME, level)
    log.info("Creating %s privacy wallet %s", level.upper(), name)
    multisig = coordinator_service.create_multisig_wallet(
        name, REQUIRED_SIGNERS, TOTAL_SIGNERS, address_type=ADDRESS_TYPE
    )

    count = 5 if level == "bad" else TRANSACTIONS_PER_WALLET + 5
    addresses = [wallet_service.get_new_address(name) for i in range(count)]
    log.info("  derived %s receive addresses", len(addresses))

    for signer in multisig.signers:
        wallet_service.mine_blocks(SIGNER_FUNDING_BLOCKS, to_wallet=signer)
    wallet_service.mine_blocks(MATURITY_BLOCKS, to_wallet=multisig.signers[0])
    return {"name": name, "signers": multisig.signers, "addresses": addresses}


def send(history, signer, address, amount, kind, reused=False):
    amount = round(amount, 8)
    txid = wallet_service.send_to_address(signer, address, amount)
    history.append({
        "index": len(history),
        "txid": txid,
        "from": signer,
        "to": address,
        "amount": amount,
        "type": kind,
        "addressReused": reused,
    })


def good_pattern(wallet, history):
    """Single input, never reuse an address, varied amounts."""
    signers = wallet["signers"]
    for i in range(TRANSACTIONS_PER_WALLET):
        signer = signers[i % len(signers)]
        variants = [
            SMALL * (1 + spread(i)),
            MEDIUM * (1 + spread(i) * 0.5),
            LARGE * (0.5 + spread(i) * 0.5),
        ]
        send(history, signer, wallet["addresses"][i], variants[i % 3], "simple_spend")
        if i > 0 and i % 5 == 0:
            wallet_service.mine_blocks(1, to_wallet=signer)


def moderate_pattern(wallet, history):
    """Fresh addresses, with periodic consolidation and fragmentation."""
    signers = wallet["signers"]
    for i in range(TRANSACTIONS_PER_WALLET):
        signer = signers[i % len(signers)]
        if i > 0 and i % 4 == 0:
            amount, kind = LARGE * (1 + spread(i)), "consolidation"
        elif i % 3 == 0:
            amount, kind = SMALL * (0.5 + spread(i)), "fragmentation"
        else:
            amount, kind = MEDIUM * (0.8 + spread(i) * 0.4), "simple_spend"
        send(history, signer, wallet["addresses"][i], amount, kind)
        if i > 0 and i % 4 == 0:
            wallet_service.mine_blocks(1, to_wallet=signer)


def bad_pattern(wallet, history):
    """A handful of reused addresses, extra mixing sends, round amounts."""
    signers = wallet["signers"]
    reused = wallet["addresses"][:REUSED_ADDRESSES]
    for i in range(TRANSACTIONS_PER_WALLET):
        signer = signers[i % len(signers)]
        address = reused[i % len(reused)]
        send(history, signer, address, ROUND_AMOUNTS[i % len(ROUND_AMOUNTS)], "reuse", reused=True)
        if i > 0 and i % 2 == 0:
            amount = ROUND_AMOUNTS[(i + 1) % len(ROUND_AMOUNTS)]
            send(history, signer, address, amount, "mixing", reused=True)
        if i > 0 and i % 5 == 0:
            wallet_service.mine_blocks(1, to_wallet=signer)


PATTERNS = {"good": good_pattern, "moderate": moderate_pattern, "bad": bad_pattern}


def wallet_config(wallet):
    described = coordinator_service.describe(wallet["name"])
    return {
        "name": wallet["name"],
        "addressType": ADDRESS_TYPE,
        "network": config.network,
        "quorum": described["quorum"],
        "signers": described["signers"],
        "client": {"type": "private", "walletName": wallet["name"]},
    }


def type_counts(history):
    counts = {}
    for tx in history:
        counts[tx["type"]] = counts.get(tx["type"], 0) + 1
    return counts


def run():
    created = {}
    for level in LEVELS:
        created[level] = create_level_wallet(level)

    histories = {}
    for level in LEVELS:
        history = []
        PATTERNS[level](created[level], history)
        wallet_service.mine_blocks(CONFIRMATION_BLOCKS, to_wallet=created[level]["signers"][0])
        histories[level] = history
        log.info("Created %s %s privacy transactions", len(history), level)

    for level in LEVELS:
        history = histories[level]
        log.info(
            "%s: %s transactions, types %s, address reuse %s",
            level.upper(),
            len(history),
            type_counts(history),
            len([tx for tx in history if tx["addressReused"]]),
        )
    log.info("Expected health scores: good ~0.7-0.9, moderate ~0.4-0.6, bad ~0.1-0.3")

    return {
        "wallets": dict((level, created[level]["name"]) for level in LEVELS),
        "transactions": dict((level, len(histories[level])) for level in LEVELS),
        "configs": dict((level, wallet_config(created[level])) for level in LEVELS),
    }
