"""HTTP API tests using FastAPI's TestClient against a temporary file store."""

import os
import shutil
import tempfile
import unittest
from unittest.mock import patch

from fastapi.testclient import TestClient

import server.app as app_module
from core.models import StudentProfile, WordEntry
from server.file_storage import FileStorage

from mocks import MockAIProvider, MockStorage


class ServerTestCase(unittest.TestCase):

    def setUp(self):
        self.data_dir = tempfile.mkdtemp()
        self.storage = FileStorage(config_file=os.path.join(self.data_dir, 'config.json'),
                                   data_dir=self.data_dir)
        self.ai = MockAIProvider()
        app_module.storage = self.storage
        app_module.ai_provider = self.ai
        app_module.contests.clear()
        app_module.drills.clear()
        # Startup handlers only run inside a ``with`` block, so the store set above is kept
        self.client = TestClient(app_module.create_app())

    def tearDown(self):
        shutil.rmtree(self.data_dir)

    def add_student(self, first='Ana', last='Lopez', grade=1, **extra) -> dict:
        response = self.client.post('/api/students', json={
            'first_name': first, 'last_name': last, 'school': 'Central', 'grade': grade, **extra
        })
        self.assertEqual(response.status_code, 200, response.text)
        return response.json()


class TestWordsApi(ServerTestCase):

    def test_root(self):
        self.assertEqual(self.client.get('/').json()['service'], 'spellbee')

    def test_add_list_update_delete(self):
        word = self.client.post('/api/words', json={'word': ' Puppy ', 'grade': 1}).json()
        self.assertEqual(word['word'], 'Puppy')
        self.assertEqual(word['definition'], 'No definition provided.')
        self.assertEqual(word['difficulty'], 'Medium')

        self.client.post('/api/words', json={'word': 'Galaxy', 'grade': 4})
        words = self.client.get('/api/words', params={'grade': 1}).json()['words']
        self.assertEqual([w['word'] for w in words], ['Puppy'])

        response = self.client.put(f"/api/words/{word['id']}",
                                   json={'word': 'Puppy', 'grade': 2, 'definition': 'A young dog.'})
        self.assertEqual(response.json()['grade'], 2)
        self.assertEqual(response.json()['definition'], 'A young dog.')

        self.assertEqual(self.client.delete(f"/api/words/{word['id']}").status_code, 200)
        self.assertEqual(self.client.delete(f"/api/words/{word['id']}").status_code, 404)

    def test_validation(self):
        self.assertEqual(self.client.post('/api/words', json={'word': '  ', 'grade': 1}).status_code, 400)
        self.assertEqual(self.client.post('/api/words', json={'word': 'x', 'grade': 13}).status_code, 400)
        response = self.client.put('/api/words/missing', json={'word': 'x', 'grade': 1})
        self.assertEqual(response.status_code, 404)

    def test_add_with_enrichment(self):
        word = self.client.post('/api/words', json={'word': 'Ephemeral', 'grade': 9, 'enrich': True}).json()
        self.assertEqual(word['definition'], 'Meaning of Ephemeral')
        self.assertEqual(word['difficulty'], 'Hard')
        self.assertEqual(self.ai.enrich_calls, [('Ephemeral', 9)])

    def test_enrich_without_provider(self):
        app_module.ai_provider = None
        response = self.client.post('/api/words/enrich', json={'word': 'Galaxy', 'grade': 4})
        self.assertEqual(response.status_code, 503)

    def test_dashboard_and_flashcard(self):
        self.client.post('/api/words', json={'word': 'Puppy', 'grade': 1, 'difficulty': 'Hard'})
        summary = self.client.get('/api/dashboard').json()
        self.assertEqual(summary['total_words'], 1)
        self.assertEqual(summary['hard_words'], 1)
        card = self.client.get('/api/flashcard', params={'grade': 1}).json()
        self.assertEqual(card['word']['word'], 'Puppy')
        self.assertIsNone(self.client.get('/api/flashcard', params={'grade': 3}).json()['word'])

    def test_storage_error_maps_to_502(self):
        failing = MockStorage()
        failing.failing.add('fetch_words')
        app_module.storage = failing
        self.assertEqual(self.client.get('/api/words').status_code, 502)


class TestStudentsApi(ServerTestCase):

    def test_roster_hides_passwords(self):
        self.add_student(username='ana', password='pw')
        self.add_student('Ben', 'Kim', grade=2)
        data = self.client.get('/api/students', params={'grade': 1}).json()
        self.assertEqual([s['first_name'] for s in data['students']], ['Ana'])
        self.assertNotIn('password', data['students'][0])
        self.assertEqual(data['schools'], ['Central'])

    def test_required_fields(self):
        response = self.client.post('/api/students', json={
            'first_name': 'Ana', 'last_name': ' ', 'school': 'Central', 'grade': 1})
        self.assertEqual(response.status_code, 400)

    def test_student_login(self):
        self.add_student(username='ana', password='pw')
        ok = self.client.post('/api/auth/student', json={'username': 'ana', 'password': 'pw'}).json()
        self.assertTrue(ok['success'])
        self.assertEqual(ok['student']['first_name'], 'Ana')
        bad = self.client.post('/api/auth/student', json={'username': 'ana', 'password': 'x'}).json()
        self.assertFalse(bad['success'])

    @patch.dict(os.environ, {'SPELLBEE_TEACHER_CREDENTIALS': ''})
    def test_teacher_login(self):
        ok = self.client.post('/api/auth/teacher', json={'username': 'teacher', 'password': 'bee2025'})
        self.assertTrue(ok.json()['success'])
        bad = self.client.post('/api/auth/teacher', json={'username': 'teacher', 'password': 'nope'})
        self.assertFalse(bad.json()['success'])

    def test_update_and_delete(self):
        student = self.add_student()
        response = self.client.put(f"/api/students/{student['id']}", json={
            'first_name': 'Anna', 'last_name': 'Lopez', 'school': 'Central', 'grade': 1})
        self.assertEqual(response.json()['first_name'], 'Anna')
        self.assertEqual(self.client.delete(f"/api/students/{student['id']}").status_code, 200)
        self.assertEqual(self.client.get(f"/api/students/{student['id']}/dashboard").status_code, 404)

    def test_duplicate_username(self):
        ana = self.add_student(username='ana', password='pw')
        response = self.client.post('/api/students', json={
            'first_name': 'Ben', 'last_name': 'Kim', 'school': 'Central', 'grade': 1, 'username': 'ana'})
        self.assertEqual(response.status_code, 400)
        self.assertIn('Username already taken', response.json()['detail'])

        ben = self.add_student('Ben', 'Kim', username='ben')
        response = self.client.put(f"/api/students/{ben['id']}", json={
            'first_name': 'Ben', 'last_name': 'Kim', 'school': 'Central', 'grade': 1, 'username': 'ana'})
        self.assertEqual(response.status_code, 400)

        # Keeping one's own username is not a clash
        response = self.client.put(f"/api/students/{ana['id']}", json={
            'first_name': 'Anna', 'last_name': 'Lopez', 'school': 'Central', 'grade': 1, 'username': 'ana'})
        self.assertEqual(response.status_code, 200)

    def test_update_unknown_student(self):
        response = self.client.put('/api/students/nobody', json={
            'first_name': 'Ana', 'last_name': 'Lopez', 'school': 'Central', 'grade': 1})
        self.assertEqual(response.status_code, 404)


class TestContestApi(ServerTestCase):

    def setUp(self):
        super().setUp()
        self.storage.add_word(WordEntry('w1', 'Puppy', '', '', 1))
        self.storage.add_student(StudentProfile('s1', 'Ana', 'Lopez', 'Central', 1))
        self.contest_id = self.client.post('/api/contests', json={'grade': 1}).json()['contest_id']

    def event(self, **event):
        return self.client.post(f'/api/contests/{self.contest_id}/events', json=event)

    def test_full_contest(self):
        self.event(type='configure', moderator='Ms. Rose')
        state = self.event(type='start').json()['state']
        self.assertEqual(state['phase'], 'active')
        self.assertEqual(state['current_student']['name'], 'Ana Lopez')

        state = self.event(type='generate_word').json()['state']
        self.assertEqual(state['turn']['word']['word'], 'Puppy')
        self.event(type='type_spelling', text='puppy')
        self.event(type='set_protocol', opened=True, closed=True)
        state = self.event(type='submit').json()['state']
        self.assertEqual(state['attempts'][0]['result'], 'correct')

        data = self.event(type='end').json()
        self.assertEqual(data['state']['phase'], 'summary')
        self.assertIsNone(data['save_error'])

        sessions = self.client.get('/api/sessions').json()['sessions']
        self.assertEqual(len(sessions), 1)
        self.assertEqual(sessions[0]['accuracy'], 100)

        detail = self.client.get(f"/api/sessions/{sessions[0]['id']}").json()
        self.assertEqual(detail['students'][0]['correct'], 1)

    def test_rejected_event_keeps_state(self):
        response = self.event(type='start')
        self.assertEqual(response.status_code, 400)
        self.assertIn("Moderator's name", response.json()['detail'])
        state = self.client.get(f'/api/contests/{self.contest_id}').json()['state']
        self.assertEqual(state['phase'], 'setup')

    def test_malformed_events_are_bad_requests(self):
        for event in ({'type': 'configure', 'moderator': None},
                      {'type': 'configure', 'range_min': '3'},
                      {'type': 'configure', 'avoid_repetition': 'false'},
                      {'type': 'toggle_student'},
                      {'type': 'select_grade', 'grade': 'abc'}):
            response = self.event(**event)
            self.assertEqual(response.status_code, 400, event)

        self.assertEqual(self.event(type='configure', moderator='Ms. Rose').status_code, 200)
        self.assertEqual(self.event(type='start').status_code, 200)
        state = self.event(type='generate_word').json()['state']
        self.assertEqual(state['turn']['word']['word'], 'Puppy')

    def test_unknown_contest(self):
        self.assertEqual(self.client.get('/api/contests/nope').status_code, 404)

    @patch.object(app_module, 'MAX_OPEN_CONTESTS', 2)
    def test_saved_contests_make_room_first(self):
        self.event(type='configure', moderator='Ms. Rose')
        self.event(type='start')
        self.event(type='end')
        waiting = self.client.post('/api/contests', json={'grade': 1}).json()['contest_id']

        newest = self.client.post('/api/contests', json={'grade': 1}).json()['contest_id']
        self.assertEqual(self.client.get(f'/api/contests/{self.contest_id}').status_code, 404)
        self.assertEqual(self.client.get(f'/api/contests/{waiting}').status_code, 200)
        self.assertEqual(self.client.get(f'/api/contests/{newest}').status_code, 200)

    @patch.object(app_module, 'MAX_OPEN_CONTESTS', 2)
    def test_open_contests_are_capped(self):
        for _ in range(3):
            self.client.post('/api/contests', json={'grade': 1})
        self.assertEqual(len(app_module.contests), 2)
        self.assertNotIn(self.contest_id, app_module.contests)


class TestDrillApi(ServerTestCase):

    def setUp(self):
        super().setUp()
        self.storage.add_word(WordEntry('w1', 'Puppy', 'A young dog.', '', 1))
        self.student = self.add_student()

    def test_drill_round(self):
        sid = self.student['id']
        started = self.client.post(f'/api/drill/{sid}/start', json={'grade': 1}).json()
        self.assertEqual(started['word_count'], 1)

        word = self.client.get(f'/api/drill/{sid}/next').json()
        self.assertEqual(word['word_id'], 'w1')
        self.assertNotIn('word', word)

        result = self.client.post(f'/api/drill/{sid}/answer', json={'answer': 'Puppy'}).json()
        self.assertTrue(result['correct'])
        self.assertEqual(result['total_xp'], 10)
        self.assertIn('first_win', result['new_badges'])

        dashboard = self.client.get(f'/api/students/{sid}/dashboard').json()
        self.assertEqual(dashboard['student']['total_xp'], 10)
        self.assertEqual(dashboard['rank'], 1)
        earned = [b['key'] for b in dashboard['badges'] if b['earned']]
        self.assertIn('first_win', earned)

        board = self.client.get('/api/leaderboard', params={'grade': 1}).json()['students']
        self.assertEqual(board[0]['id'], sid)

    def test_answer_before_next(self):
        sid = self.student['id']
        self.client.post(f'/api/drill/{sid}/start', json={'grade': 1})
        response = self.client.post(f'/api/drill/{sid}/answer', json={'answer': 'Puppy'})
        self.assertEqual(response.status_code, 400)

    def test_drill_not_started(self):
        self.assertEqual(self.client.get(f"/api/drill/{self.student['id']}/next").status_code, 404)

    def test_grade_without_words(self):
        sid = self.student['id']
        self.client.post(f'/api/drill/{sid}/start', json={'grade': 5})
        self.assertEqual(self.client.get(f'/api/drill/{sid}/next').status_code, 400)


class TestSchoolsApi(ServerTestCase):

    def setUp(self):
        super().setUp()
        self.school = self.client.post('/api/schools', json={
            'name': 'North Academy', 'username': 'north', 'password': 'pw'}).json()

    def test_school_login_and_registration(self):
        login = self.client.post('/api/auth/school', json={'username': 'north', 'password': 'pw'}).json()
        self.assertTrue(login['success'])
        self.assertNotIn('password', login['school'])

        response = self.client.post(f"/api/schools/{self.school['id']}/students", json={
            'first_name': 'Cleo', 'last_name': 'Diaz', 'grade': 3})
        self.assertEqual(response.json()['school'], 'North Academy')
        students = self.client.get(f"/api/schools/{self.school['id']}/students").json()['students']
        self.assertEqual([s['first_name'] for s in students], ['Cleo'])

    def test_teacher_edit_keeps_school_link(self):
        student = self.client.post(f"/api/schools/{self.school['id']}/students", json={
            'first_name': 'Cleo', 'last_name': 'Diaz', 'grade': 3, 'photo': 'cleo.png'}).json()
        response = self.client.put(f"/api/students/{student['id']}", json={
            'first_name': 'Cleo', 'last_name': 'Diaz', 'school': 'North Academy', 'grade': 4})
        self.assertEqual(response.json()['school_id'], self.school['id'])
        self.assertEqual(response.json()['photo'], 'cleo.png')
        students = self.client.get(f"/api/schools/{self.school['id']}/students").json()['students']
        self.assertEqual([s['grade'] for s in students], [4])

    def test_duplicate_username(self):
        response = self.client.post('/api/schools', json={
            'name': 'Other', 'username': 'north', 'password': 'pw'})
        self.assertEqual(response.status_code, 400)

    def test_payments(self):
        payment = self.client.post('/api/payments', json={
            'school_id': self.school['id'], 'amount': 120, 'date': '2025-02-01'}).json()
        self.assertEqual(payment['status'], 'pending')
        self.assertEqual(payment['method'], 'Cash USD')

        verified = self.client.post(f"/api/payments/{payment['id']}/status", json={'status': 'verified'})
        self.assertEqual(verified.json()['status'], 'verified')
        bad = self.client.post(f"/api/payments/{payment['id']}/status", json={'status': 'lost'})
        self.assertEqual(bad.status_code, 400)

        listed = self.client.get('/api/payments', params={'school_id': self.school['id']}).json()
        self.assertEqual(len(listed['payments']), 1)

    def test_resources(self):
        self.client.post('/api/resources', json={'name': 'Grade 3 list', 'url': 'http://x/list.pdf', 'grade': 3})
        self.assertEqual(len(self.client.get('/api/resources', params={'grade': 3}).json()['resources']), 1)
        self.assertEqual(self.client.get('/api/resources', params={'grade': 4}).json()['resources'], [])


class TestSponsorsApi(ServerTestCase):

    def test_predefined_sponsors_when_empty(self):
        sponsors = self.client.get('/api/sponsors').json()['sponsors']
        self.assertEqual([s['name'] for s in sponsors], ['TechCorp', 'EduBooks'])

    def test_add_sponsor_and_vendor(self):
        self.client.post('/api/sponsors', json={'name': 'Acme', 'logo_url': 'http://logo', 'tier': 'Gold'})
        self.assertEqual([s['name'] for s in self.client.get('/api/sponsors').json()['sponsors']], ['Acme'])
        missing_logo = self.client.post('/api/vendors', json={'name': 'Snacks', 'logo_url': ''})
        self.assertEqual(missing_logo.status_code, 400)
        self.client.post('/api/vendors', json={'name': 'Snacks', 'logo_url': 'http://img'})
        self.assertEqual(len(self.client.get('/api/vendors').json()['vendors']), 1)


if __name__ == '__main__':
    unittest.main()
