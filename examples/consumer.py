import asyncio
import sys
from streamroute.client.consumer import ConsumerClient


async def main(consumer_name: str):
    # Connect to local TCP server on port 9000
    consumer = ConsumerClient("localhost:9000", stream="demo-stream", consumer=consumer_name)

    print(f"Consumer {consumer_name} started. Draining its backlog...")

    processed = 0
    try:
        while True:
            messages = await consumer.read(after_id="0", count=20)
            if not messages:
                break

            for msg in messages:
                print(f"Processing {msg.id}: {msg.fields}")

            acked = await consumer.ack([msg.id for msg in messages])
            processed += acked

        remaining = await consumer.pending(count=1)
        print(f"Processed {processed} messages, {len(remaining)} still pending")
    finally:
        await consumer.close()


if __name__ == "__main__":
    asyncio.run(main(sys.argv[1] if len(sys.argv) > 1 else "consumerA"))
