def test_saved_requires_token(client):
    r = client.get('/api/saved')
    assert r.status_code == 401


def test_empty_user_lists_four_collections(client, register):
    headers = register('empty@example.com')
    r = client.get('/api/saved', headers=headers)
    assert r.status_code == 200
    assert r.json() == {'savedCourses': [], 'savedNotes': [], 'savedSyllabus': [], 'savedPapers': []}


def test_paper_save_and_remove_scenario(client, register):
    headers = register('alice@example.com', name='alice')
    r = client.post('/api/saved/paper', json={'title': 'Midterm 2023', 'courseName': 'Algorithms', 'url': 'http://x/1'}, headers=headers)
    assert r.status_code == 200
    papers = r.json()
    assert len(papers) == 1
    assert papers[0]['courseName'] == 'Algorithms'
    assert papers[0]['url'] == 'http://x/1'

    courses = client.get('/api/saved/courses', headers=headers).json()
    assert [c['courseName'] for c in courses] == ['Algorithms']

    r = client.delete(f"/api/saved/paper/{papers[0]['id']}", headers=headers)
    assert r.status_code == 200
    assert r.json() == []
    saved = client.get('/api/saved', headers=headers).json()
    assert saved['savedPapers'] == []
    assert saved['savedCourses'] == []


def test_duplicate_note_is_400(client, register):
    headers = register('dup@example.com')
    body = {'title': 'Unit 1', 'courseName': 'Python'}
    assert client.post('/api/saved/note', json=body, headers=headers).status_code == 200
    r = client.post('/api/saved/note', json=body, headers=headers)
    assert r.status_code == 400
    assert r.json()['detail'] == 'Note already saved'


def test_missing_fields_are_400(client, register):
    headers = register('missing@example.com')
    r = client.post('/api/saved/syllabus', json={'title': 'Outline'}, headers=headers)
    assert r.status_code == 400
    r = client.post('/api/saved/course', json={}, headers=headers)
    assert r.status_code == 400


def test_syllabus_routes(client, register):
    headers = register('syl@example.com')
    r = client.post('/api/saved/syllabus', json={'title': 'Outline', 'courseName': 'Drones'}, headers=headers)
    assert r.status_code == 200
    assert r.json()[0]['url'] == '#'
    listed = client.get('/api/saved/syllabus', headers=headers).json()
    assert [s['title'] for s in listed] == ['Outline']
    r = client.delete('/api/saved/syllabus/does-not-exist', headers=headers)
    assert r.status_code == 404


def test_course_routes(client, register):
    headers = register('course@example.com')
    r = client.post('/api/saved/course', json={'courseName': 'Operating Systems', 'courseId': 'os'}, headers=headers)
    assert r.status_code == 200
    assert r.json()[0]['courseId'] == 'os'
    r = client.post('/api/saved/course', json={'courseName': 'Operating Systems'}, headers=headers)
    assert r.status_code == 400
    # the browser client deletes by course name
    r = client.delete('/api/saved/course/Operating%20Systems', headers=headers)
    assert r.status_code == 200
    assert r.json() == []
    r = client.delete('/api/saved/course/os', headers=headers)
    assert r.status_code == 404


def test_collections_are_per_user(client, register):
    a = register('a@example.com')
    b = register('b@example.com')
    client.post('/api/saved/note', json={'title': 'T', 'courseName': 'C'}, headers=a)
    assert client.get('/api/saved/notes', headers=b).json() == []
    assert len(client.get('/api/saved/notes', headers=a).json()) == 1


def test_x_auth_token_header(client):
    r = client.post('/api/auth/register', json={'email': 'legacy@example.com', 'password': 'pw'})
    token = r.json()['token']
    r = client.get('/api/saved/papers', headers={'x-auth-token': token})
    assert r.status_code == 200


def test_storage_failure_is_500(client, register, monkeypatch):
    from notenexus.errors import PersistenceError
    from notenexus.main import app

    headers = register('broken@example.com')

    def boom(_doc):
        raise PersistenceError('disk full')

    monkeypatch.setattr(app.state.users.backend, 'upsert_user', boom)
    r = client.post('/api/saved/note', json={'title': 'T', 'courseName': 'C'}, headers=headers)
    assert r.status_code == 500
    assert r.json() == {'detail': 'Server error'}


def test_request_id_header_exists(client):
    r = client.get('/health')
    assert r.status_code == 200
    assert 'X-Request-ID' in r.headers
