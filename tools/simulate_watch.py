import json
import time
import argparse

import requests
from tenacity import retry, stop_after_attempt, wait_fixed, retry_if_exception_type

from healthdash.logger import get_logger

logger = get_logger(__name__)

DEFAULT_ENDPOINT = "http://127.0.0.1:8000/api/health/watch-sync-key"
DEFAULT_DATA_FILE = "tools/sample_watch_data.json"

@retry(
    stop=stop_after_attempt(3),
    wait=wait_fixed(2),
    retry=retry_if_exception_type(requests.exceptions.ConnectionError),
    reraise=True
)
def push_sample(endpoint_url: str, payload: dict) -> dict:
    """Sends one watch sample; connection errors are retried, HTTP errors are not."""
    response = requests.post(endpoint_url, json=payload, timeout=10)
    response.raise_for_status()
    return response.json()

def run_simulation(file_path: str, endpoint_url: str, api_key: str, interval: float = 1.0) -> int:
    """
    Reads watch samples from a file and pushes them to the key-based sync
    endpoint, the way the iOS companion app does. Returns the number of
    samples the server accepted.
    """
    try:
        with open(file_path, 'r') as f:
            samples = json.load(f)
    except FileNotFoundError:
        logger.error(f"Error: The file '{file_path}' was not found.")
        return 0
    except json.JSONDecodeError:
        logger.error(f"Error: Could not decode JSON from '{file_path}'.")
        return 0

    logger.info("--- Starting watch sync simulation ---")
    logger.info(f"Target endpoint: {endpoint_url}")

    accepted = 0
    for i, sample in enumerate(samples):
        payload = {**sample, "apiKey": api_key}
        try:
            logger.info(f"Sending sample {i+1}: {sample}")
            result = push_sample(endpoint_url, payload)
            logger.info(f"-> Server response: {result}")
            accepted += 1
        except requests.exceptions.RequestException as e:
            logger.error(f"!! Failed to send sample {i+1}: {e}")

        if interval:
            time.sleep(interval)

    logger.info(f"--- Simulation finished: {accepted}/{len(samples)} accepted ---")
    return accepted


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Replay Apple Watch samples against the watch sync endpoint.")
    parser.add_argument("--api-key", required=True, help="Registered email of the target user.")
    parser.add_argument("--file", default=DEFAULT_DATA_FILE, help="JSON list of samples.")
    parser.add_argument("--endpoint", default=DEFAULT_ENDPOINT)
    parser.add_argument("--interval", type=float, default=1.0, help="Seconds between samples.")
    args = parser.parse_args()

    run_simulation(args.file, args.endpoint, args.api_key, args.interval)
