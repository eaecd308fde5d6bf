import pytest

from notenexus.errors import NotFoundError
from notenexus.utils.catalog import course_files, describe_course, list_courses


def _touch(path, content=b'x'):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(content)


@pytest.fixture
def catalog_root(settings):
    root = settings.CATALOG_DIR
    _touch(root / 'Python Programming' / 'notes' / 'unit1.pdf')
    _touch(root / 'Python Programming' / 'intro.docx')
    _touch(root / 'Python Programming' / 'Syllabus' / 'outline.pdf')
    _touch(root / 'Python Programming' / 'question-paper' / 'midterm.pdf')
    _touch(root / 'Python Programming' / 'exams' / '2023' / 'final.pdf')
    (root / 'Drone Technology').mkdir(parents=True)
    _touch(root / 'README.txt')
    return root


def test_list_courses(catalog_root):
    courses = list_courses(catalog_root)
    assert [c['name'] for c in courses] == ['Drone Technology', 'Python Programming']
    assert courses[0]['imageKeyword'] == 'drone'
    assert courses[1]['path'] == 'database/Python Programming'
    assert all(c['id'] for c in courses)


def test_list_courses_missing_root(tmp_path):
    assert list_courses(tmp_path / 'nope') == []


def test_describe_course_fallback():
    hint = describe_course('Ancient History')
    assert hint['imageKeyword'] == 'education'
    assert 'Ancient History' in hint['description']


def test_course_files_grouping(catalog_root):
    files = course_files(catalog_root, 'Python Programming')
    assert sorted(f['name'] for f in files['notes']) == ['final.pdf', 'intro.docx', 'unit1.pdf']
    assert [f['name'] for f in files['syllabus']] == ['outline.pdf']
    assert [f['name'] for f in files['questionPapers']] == ['midterm.pdf']
    assert files['syllabus'][0]['path'] == 'database/Python Programming/Syllabus/outline.pdf'
    assert files['syllabus'][0]['type'] == 'pdf'


@pytest.mark.parametrize('name', ['Unknown', '..', '../database', 'README.txt'])
def test_course_files_unknown(catalog_root, name):
    with pytest.raises(NotFoundError):
        course_files(catalog_root, name)


def test_catalog_endpoints(client, catalog_root):
    r = client.get('/api/courses')
    assert r.status_code == 200
    assert len(r.json()) == 2
    r = client.get('/api/course/Python Programming')
    assert r.status_code == 200
    assert len(r.json()['questionPapers']) == 1
    r = client.get('/api/course/Missing')
    assert r.status_code == 404
