"""
@name Child Pays For Parent (CPFP) Scenario
@description A low-fee parent transaction is followed by a high-fee child spending its unconfirmed output, so miners take both.
@version 1.0.0
"""

PARENT_WALLET = "cpfp_parent"
CHILD_WALLET = "cpfp_child"
RECEIVER_WALLET = "cpfp_receiver"

PARENT_AMOUNT = 2.0
PARENT_FEE_RATE = 1
CHILD_AMOUNT = 1.9
CHILD_FEE_RATE = 50

INITIAL_BLOCKS = 101
MEMPOOL_TIMEOUT_MS = 10000


def run():
    for name in (PARENT_WALLET, CHILD_WALLET, RECEIVER_WALLET):
        wallet_service.create_wallet(name)

    log.info("Mining %s blocks to fund %s", INITIAL_BLOCKS, PARENT_WALLET)
    wallet_service.mine_blocks(INITIAL_BLOCKS, to_wallet=PARENT_WALLET)

    parent = transaction_service.create_transaction(
        PARENT_WALLET,
        [{wallets[CHILD_WALLET].address: PARENT_AMOUNT}],
        tx_id="parent",
        fee_rate=PARENT_FEE_RATE,
    )
    transaction_service.sign_transaction(parent.id, PARENT_WALLET)
    transaction_service.broadcast_transaction(parent.id)
    transaction_service.wait_for_mempool(parent.id, timeout_ms=MEMPOOL_TIMEOUT_MS)
    log.info("Parent %s broadcast at %s sat/vB", parent.id, PARENT_FEE_RATE)

    # The child spends the parent's still-unconfirmed output
    child = transaction_service.create_transaction(
        CHILD_WALLET,
        [{wallets[RECEIVER_WALLET].address: CHILD_AMOUNT}],
        tx_id="child",
        fee_rate=CHILD_FEE_RATE,
        include_unsafe=True,
    )
    transaction_service.sign_transaction(child.id, CHILD_WALLET)
    transaction_service.broadcast_transaction(child.id)
    transaction_service.wait_for_mempool(child.id, timeout_ms=MEMPOOL_TIMEOUT_MS)
    log.info("Child %s broadcast at %s sat/vB", child.id, CHILD_FEE_RATE)

    if not dry_run:
        entry = rpc_client.get_mempool_entry(child.broadcast_txid)
        log.info(
            "Child package: %s ancestors, ancestor fees %s BTC",
            entry["ancestorcount"],
            entry["fees"]["ancestor"],
        )

    wallet_service.mine_blocks(1, to_wallet=PARENT_WALLET)
    log.info("Mined a block including both transactions")
    return {"parent": parent.id, "child": child.id}
