"""Console UI for spellbee drill practice."""

import logging
import shutil
import subprocess
import time
import webbrowser

import requests

from core.audio import pronounce
from core.config import POINTS_PER_CORRECT
from core.interfaces import AudioPlayer
from core.models import WordEntry
from core.utils import grade_label
from cli.api_client import SpellbeeAPIClient

logger = logging.getLogger(__name__)


class ConsoleAudioPlayer(AudioPlayer):
    """Plays recordings in the browser and speaks with espeak/say when installed."""

    def play_url(self, url: str) -> None:
        if not webbrowser.open(url):
            raise RuntimeError(f"No browser available to play {url}")

    def speak(self, text: str) -> None:
        command = shutil.which('espeak') or shutil.which('say')
        if command is None:
            raise RuntimeError("No speech synthesizer found (install espeak)")
        subprocess.run([command, text], check=True, timeout=10)


class ConsoleUI:
    """Console user interface for a student's drill."""

    def __init__(self, client: SpellbeeAPIClient, player: AudioPlayer = None):
        self.client = client
        self.player = player or ConsoleAudioPlayer()

    def say_word(self):
        """Pronounce the word in play."""
        data = self.client.speak_word()
        word = WordEntry(None, data['text'], '', '', 0, audio_url=data.get('audio_url'))
        if not pronounce(word, self.player):
            print('(Audio unavailable. Type "def" to see the definition.)')

    def print_result(self, result: dict):
        print('-' * 40)
        if result['correct']:
            print(f"Correct! +{result['points']} XP")
        else:
            print(f"Incorrect. The correct spelling is: {result['word']['word']}")
        print(f"Session score: {result['score']}")
        print(f"Total XP: {result['total_xp']} | Coins: {result['coins']} | "
              f"Streak: {result['current_streak']} day(s)")
        for badge in result['new_badges']:
            print(f"*** Badge unlocked: {badge} ***")
        print('-' * 40)

    def print_status(self, dashboard: dict):
        """Print the student's dashboard."""
        student = dashboard['student']
        level = dashboard['level']
        print('\n' + '=' * 50)
        print(f"{student['first_name']} {student['last_name']} - {grade_label(student['grade'])}")
        print('=' * 50)
        print(f"Rank title: {level['title']} ({level['league']} league)")
        print(f"XP: {level['xp']} / {level['next_level_xp']} ({level['progress_percent']:.0f}%)")
        print(f"Coins: {student['coins']} | Streak: {student['current_streak']} day(s)")
        if dashboard['rank']:
            print(f"Grade leaderboard position: #{dashboard['rank']}")
        earned = [b['name'] for b in dashboard['badges'] if b['earned']]
        print(f"Badges: {', '.join(earned) if earned else 'none yet'}")
        print('=' * 50 + '\n')

    def print_leaderboard(self, leaderboard: dict, limit: int = 10):
        print('\n' + '=' * 50)
        print('LEADERBOARD')
        print('=' * 50)
        for row in leaderboard['students'][:limit]:
            print(f"{row['rank']:>3}. {row['first_name']} {row['last_name']:<20} "
                  f"{row['total_xp']:>6} XP  {row['league']}")
        print('=' * 50 + '\n')

    def print_history(self, sessions: dict, limit: int = 10):
        print('\n' + '=' * 50)
        print('CONTEST HISTORY')
        print('=' * 50)
        if not sessions['sessions']:
            print('No contests recorded yet.')
        for s in sessions['sessions'][:limit]:
            print(f"{s['date'][:10]}  {grade_label(s['grade']):<8} {s['stage'] or '':<14} "
                  f"{s['correct_count']}/{s['attempt_count']} correct ({s['accuracy']}%)")
        print('=' * 50 + '\n')

    def run(self, grade: int):
        """Run the drill loop."""
        # Check server connection
        try:
            health = self.client.health_check()
            print(f"Connected to spellbee server ({health['service']})")
        except requests.RequestException:
            print(f"Error: Cannot connect to server at {self.client.base_url}")
            print("Make sure the server is running: python run_server.py")
            return

        try:
            drill = self.client.start_drill(grade)
            self.print_status(self.client.get_dashboard())
        except requests.HTTPError as e:
            print(f"Error starting drill: {e}")
            return

        print(f"Drilling {drill['word_count']} words from {grade_label(grade)}. "
              f"{POINTS_PER_CORRECT} XP per correct spelling.")
        print('Commands: "say" to repeat, "def" for definition, "status", "leaderboard", '
              '"history", "exit" to quit\n')

        while True:
            try:
                data = self.client.next_word()
            except requests.HTTPError as e:
                print(f"Error getting next word: {e}")
                return

            print('\nListen and spell the word.')
            self.say_word()
            started = time.monotonic()

            answer = ''
            while not answer:
                user_input = input('==> ').strip()
                command = user_input.lower()

                if command == 'exit':
                    print('Goodbye!')
                    return
                elif command in ('say', ''):
                    self.say_word()
                elif command == 'def':
                    print(f"Definition: {data['definition']}")
                elif command == 'status':
                    self.print_status(self.client.get_dashboard())
                elif command == 'leaderboard':
                    self.print_leaderboard(self.client.get_leaderboard(grade))
                elif command == 'history':
                    self.print_history(self.client.get_sessions())
                else:
                    answer = user_input

            try:
                result = self.client.submit_answer(answer, time.monotonic() - started)
                self.print_result(result)
            except requests.HTTPError as e:
                logger.error(f"Failed to submit answer: {e}")
                print(f"Error submitting answer: {e}")
