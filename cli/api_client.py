"""REST API client for spellbee server."""

import requests


class SpellbeeAPIClient:
    """Client for the student-facing parts of the spellbee REST API."""

    def __init__(self, base_url: str = "http://localhost:8000", student_id: str = None):
        self.base_url = base_url.rstrip('/')
        self.student_id = student_id
        self.session = requests.Session()

    def _get(self, endpoint: str, params: dict = None) -> dict:
        """Make a GET request."""
        response = self.session.get(f"{self.base_url}{endpoint}", params=params or {})
        response.raise_for_status()
        return response.json()

    def _post(self, endpoint: str, data: dict) -> dict:
        """Make a POST request."""
        response = self.session.post(f"{self.base_url}{endpoint}", json=data)
        response.raise_for_status()
        return response.json()

    def health_check(self) -> dict:
        """Check if the server is running."""
        return self._get("/")

    def login(self, username: str, password: str) -> dict:
        """Log in as a student; remembers the student id on success."""
        result = self._post("/api/auth/student", {'username': username, 'password': password})
        if result.get('success'):
            self.student_id = result['student']['id']
        return result

    def get_dashboard(self) -> dict:
        """Profile, level progress, rank and badges."""
        return self._get(f"/api/students/{self.student_id}/dashboard")

    def get_leaderboard(self, grade: int = None) -> dict:
        return self._get("/api/leaderboard", {'grade': grade} if grade else None)

    def get_sessions(self) -> dict:
        return self._get("/api/sessions")

    def start_drill(self, grade: int) -> dict:
        return self._post(f"/api/drill/{self.student_id}/start", {'grade': grade})

    def next_word(self) -> dict:
        return self._get(f"/api/drill/{self.student_id}/next")

    def speak_word(self) -> dict:
        """Text and audio URL for the word in play."""
        return self._get(f"/api/drill/{self.student_id}/speak")

    def submit_answer(self, answer: str, elapsed_seconds: float) -> dict:
        return self._post(f"/api/drill/{self.student_id}/answer", {
            'answer': answer,
            'elapsed_seconds': elapsed_seconds
        })
