import asyncio
from streamroute.client.producer import ProducerClient

TYPES = "ABCDEFGH"


async def main():
    # Connect to local TCP server on port 9000
    producer = ProducerClient("localhost:9000", stream="demo-stream")

    await producer.set_routing_table({f"type{t}": f"consumer{t}" for t in TYPES})

    print("Sending messages via Binary TCP...")
    for i in range(1, 1001):
        msg_id = await producer.send(
            {"type": f"type{TYPES[(i - 1) % len(TYPES)]}", "value": f"value{i}", "status": i}
        )
        if i % 100 == 0:
            print(f"Sent message {i} with ID: {msg_id}")

    result = await producer.route()
    print(f"Routed {result['claim_msg_num']} of {result['all_msg_num']} messages")

    await producer.close()


if __name__ == "__main__":
    asyncio.run(main())
