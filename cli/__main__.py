"""Entry point for spellbee CLI client."""

import argparse
import getpass
import sys

import requests

from cli.api_client import SpellbeeAPIClient
from cli.console import ConsoleUI


def main():
    parser = argparse.ArgumentParser(description='Spellbee - spelling drill practice')
    parser.add_argument(
        '--server',
        default='http://localhost:8000',
        help='Server URL (default: http://localhost:8000)'
    )
    parser.add_argument(
        '--student',
        help='Student ID (prompts for username/password when omitted)'
    )
    parser.add_argument(
        '--grade',
        type=int,
        help="Grade to drill (default: the student's grade)"
    )
    args = parser.parse_args()

    client = SpellbeeAPIClient(base_url=args.server, student_id=args.student)
    ui = ConsoleUI(client)

    try:
        if not client.student_id:
            result = client.login(input('Username: ').strip(), getpass.getpass('Password: '))
            if not result['success']:
                print(result['error'])
                sys.exit(1)
        grade = args.grade or client.get_dashboard()['student']['grade']
        ui.run(grade)
    except requests.RequestException as e:
        print(f"Error: {e}")
        sys.exit(1)
    except KeyboardInterrupt:
        print('\nGoodbye!')
        sys.exit(0)


if __name__ == '__main__':
    main()
