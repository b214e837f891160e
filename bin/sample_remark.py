import logging
import asyncio
from substrateinterface import Keypair
import subsend


async def main():
    logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')

    chain = "development"
    chain_config = subsend.load_config().create_inner_config({"_url": "ws://127.0.0.1:9944"})

    client = subsend.client_factory(chain, chain_config)
    alice = Keypair.create_from_uri("//Alice")

    call = await client.create_call("System", "remark_with_event", {"remark": "0x68656c6c6f"}, keypair=alice)
    logging.info(f"submitting {call}...")
    events = await subsend.submit_and_wait(
        call, client,
        wait_for_finalization=chain_config.wait_for_finalization,
        timeout=chain_config.timeout
    )

    remarked = subsend.find_event(events, "System", "Remarked")
    if remarked is None:
        logging.error("no System.Remarked event emitted")
        return

    # print the event fields by type
    for key, value in subsend.get_event_data(remarked).items():
        print(f"{key}: {value}")


if __name__ == "__main__":
    asyncio.run(main())
