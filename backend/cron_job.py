"""Send the Friday timesheet reminder - can be run directly as a cron job."""
import logging
import os
import sys

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from directory import get_directory
from reminder import send_friday_reminders

if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)

    result = send_friday_reminders(get_directory())

    if result["success"]:
        print(f"SUCCESS: {result['emails_sent']}/{result['recipients']} reminder emails sent")
        print(f"Slack notified: {result['slack_sent']}")
        for failure in result["email_failures"]:
            print(f"  FAILED: {failure['email']}: {failure['error']}")
        sys.exit(0)
    else:
        print(f"ERROR: {result.get('error')}")
        sys.exit(1)
