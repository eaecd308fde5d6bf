"""Helpers to discover courses under the local catalog folder.

Each top-level directory of the catalog root is a course. Files inside
a course are grouped into notes, syllabus and question papers by the
name of the folder that contains them.
"""

from pathlib import Path
from typing import Dict, List

from ..errors import NotFoundError
from ..schemas import new_id

SYLLABUS_DIRS = {'syllabus'}
PAPER_DIRS = {'question-paper', 'questionpaper', 'question_paper', 'questions', 'papers', 'exams'}

# (name keywords, description, image keyword), first match wins
COURSE_HINTS = (
    (('python',), 'Learn Python fundamentals, modules, data structures, and applications', 'python'),
    (('data structure', 'algorithm'), 'Fundamental algorithms, data structures, and problem-solving', 'algorithm'),
    (('operating',), 'Process management, memory management, and OS architecture', 'computer'),
    (('circuit', 'electric'), 'Circuit analysis, electrical components, and system design', 'circuit'),
    (('design', 'modelling'), 'CAD/CAM, design principles, and 3D modelling techniques', 'engineering'),
    (('drone',), 'Drone technology, applications, and control systems', 'drone'),
    (('communication',), 'Technical writing, presentation skills, and professional etiquette', 'communication'),
)


def describe_course(name: str) -> Dict[str, str]:
    """Return a description and image keyword inferred from the course name."""
    lower = name.lower()
    for keywords, description, image_keyword in COURSE_HINTS:
        if any(kw in lower for kw in keywords):
            return {'description': description, 'imageKeyword': image_keyword}
    return {'description': f'Course materials and resources for {name}', 'imageKeyword': 'education'}


def list_courses(root: Path) -> List[dict]:
    """Return one entry per course directory, sorted by name.

    A missing catalog root yields an empty list.
    """
    root = Path(root)
    if not root.is_dir():
        return []
    courses = []
    for d in sorted(p for p in root.iterdir() if p.is_dir() and not p.name.startswith('.')):
        entry = {'id': new_id(), 'name': d.name, 'path': f'{root.name}/{d.name}'}
        entry.update(describe_course(d.name))
        courses.append(entry)
    return courses


def _resolve_course_dir(root: Path, course_name: str) -> Path:
    root = Path(root).resolve()
    course_dir = (root / course_name).resolve()
    # reject names that escape the catalog root
    if course_dir.parent != root or not course_dir.is_dir():
        raise NotFoundError('Course not found')
    return course_dir


def course_files(root: Path, course_name: str) -> Dict[str, List[dict]]:
    """Group every file of a course into notes, syllabus and question papers.

    Paths are returned relative to the catalog root's parent with forward
    slashes (e.g. `database/Python/notes/unit1.pdf`) so they can be served
    from the static `/database` mount.
    """
    course_dir = _resolve_course_dir(root, course_name)
    base = Path(root).resolve().parent
    organized = {'notes': [], 'syllabus': [], 'questionPapers': []}
    for f in sorted(course_dir.rglob('*')):
        if not f.is_file():
            continue
        folder = f.parent.name.lower() if f.parent != course_dir else ''
        item = {
            'name': f.name,
            'path': f.relative_to(base).as_posix(),
            'type': f.suffix.lower().lstrip('.'),
        }
        if folder in SYLLABUS_DIRS:
            organized['syllabus'].append(item)
        elif folder in PAPER_DIRS:
            organized['questionPapers'].append(item)
        else:
            organized['notes'].append(item)
    return organized
