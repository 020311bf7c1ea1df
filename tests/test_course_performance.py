import asyncio

import pytest

from lms_bridge.common.errors import NotFoundError, UpstreamError
from lms_bridge.features.moodle import service

pytestmark = pytest.mark.anyio("asyncio")

COURSE = [{"id": 5, "fullname": "Algebra I", "shortname": "ALG1"}]
USERS = [
    {"id": 11, "firstname": "Ann", "lastname": "Lee", "username": "ann", "email": "ann@x.test"},
    {"id": 12, "firstname": "Ben", "lastname": "Ray", "username": "ben", "email": "ben@x.test"},
    {"id": 1, "firstname": "Site", "lastname": "Admin", "username": "admin", "email": "root@x.test"},
    {"id": 13, "firstname": "No", "lastname": "Mail", "username": "nomail", "email": ""},
    {
        "id": 14,
        "firstname": "Mona",
        "lastname": "Ger",
        "username": "mona",
        "email": "mona@x.test",
        "roles": [{"shortname": "manager"}],
    },
]
QUIZZES = {
    "quizzes": [
        {"id": 101, "course": 5, "name": "Quiz 1", "grade": 10},
        {"id": 102, "course": 5, "name": "Quiz 2", "grade": 100},
    ]
}
ATTEMPTS = {
    (11, 101): [{"id": 1, "attempt": 1, "sumgrades": 8, "state": "finished"}],
    (12, 101): [
        {"id": 2, "attempt": 1, "sumgrades": 3, "state": "finished"},
        {"id": 3, "attempt": 2, "sumgrades": 5, "state": "finished"},
    ],
    (12, 102): [{"id": 4, "attempt": 1, "sumgrades": 100, "state": "finished"}],
}


def _attempts(quizid, userid=None):
    return {"attempts": ATTEMPTS.get((userid, quizid), [])}


def _responses(**overrides):
    responses = {
        "core_course_get_courses": COURSE,
        "core_enrol_get_enrolled_users": USERS,
        "mod_quiz_get_quizzes_by_courses": QUIZZES,
        "mod_quiz_get_user_attempts": _attempts,
    }
    responses.update(overrides)
    return responses


async def test_students_ranked_by_average(fake_moodle):
    client = fake_moodle(_responses())

    result = await service.compute_course_performance(client, 5)

    assert [s.id for s in result.students] == [11, 12]
    ann, ben = result.students
    assert ann.average_score == 80.0
    assert ann.quizzes_taken == 1
    assert ben.average_score == 75.0
    assert ben.quizzes_taken == 2
    assert ann.total_quizzes == ben.total_quizzes == 2
    assert result.summary.average_score == 77.5
    assert result.summary.total_quizzes == 2
    assert result.summary.total_students == 2
    assert result.course.name == "Algebra I"
    assert result.course.student_count == 2


async def test_administrative_and_emailless_users_are_excluded(fake_moodle):
    client = fake_moodle(_responses())

    result = await service.compute_course_performance(client, 5)

    ids = {s.id for s in result.students}
    assert ids.isdisjoint({1, 13, 14})
    pairs = [p for f, p in client.calls if f == "mod_quiz_get_user_attempts"]
    assert {p["userid"] for p in pairs} == {11, 12}


async def test_failed_pairs_keep_every_student_at_zero(fake_moodle):
    def failing(quizid, userid=None):
        return UpstreamError("Moodle Error: access denied")

    client = fake_moodle(_responses(mod_quiz_get_user_attempts=failing))

    result = await service.compute_course_performance(client, 5)

    assert [s.id for s in result.students] == [11, 12]
    assert all(s.average_score == 0 and s.quizzes_taken == 0 for s in result.students)
    assert result.summary.average_score == 0


async def test_one_failed_pair_only_drops_that_quiz(fake_moodle):
    def partly_failing(quizid, userid=None):
        if (userid, quizid) == (12, 102):
            return UpstreamError("timeout")
        return _attempts(quizid, userid)

    client = fake_moodle(_responses(mod_quiz_get_user_attempts=partly_failing))

    result = await service.compute_course_performance(client, 5)

    ben = next(s for s in result.students if s.id == 12)
    assert ben.average_score == 50.0
    assert ben.quizzes_taken == 1


async def test_equal_averages_keep_enrolment_order(fake_moodle):
    client = fake_moodle(_responses(mod_quiz_get_user_attempts={"attempts": []}))

    result = await service.compute_course_performance(client, 5)

    assert [s.id for s in result.students] == [11, 12]


async def test_unknown_course_is_not_found(fake_moodle):
    client = fake_moodle(_responses(core_course_get_courses=[]))

    with pytest.raises(NotFoundError):
        await service.compute_course_performance(client, 5)


async def test_enrolment_failure_aborts(fake_moodle):
    client = fake_moodle(_responses(core_enrol_get_enrolled_users=UpstreamError("Moodle Error: nope")))

    with pytest.raises(UpstreamError):
        await service.compute_course_performance(client, 5)


async def test_student_performance(fake_moodle):
    client = fake_moodle(
        _responses(core_user_get_users_by_field=[USERS[1]])
    )

    result = await service.compute_student_performance(client, 12, 5)

    assert result.student.name == "Ben Ray"
    assert result.performance.average_score == 75.0
    assert result.performance.quizzes_taken == 2
    assert result.performance.total_quizzes == 2
    first = result.quiz_attempts[0]
    assert first.best_attempt.id == 3
    assert first.score == 50.0
    assert len(first.all_attempts) == 2


async def test_student_performance_unknown_user(fake_moodle):
    client = fake_moodle(_responses(core_user_get_users_by_field=[]))

    with pytest.raises(NotFoundError):
        await service.compute_student_performance(client, 99, 5)


async def test_student_quiz_attempts_ordered_with_best(fake_moodle):
    def reversed_attempts(quizid, userid=None):
        return {"attempts": list(reversed(ATTEMPTS[(12, 101)]))}

    client = fake_moodle(_responses(mod_quiz_get_user_attempts=reversed_attempts))

    result = await service.list_student_quiz_attempts(client, 12, 101)

    assert [a.attempt for a in result.attempts] == [1, 2]
    assert result.best_attempt.id == 3
    assert result.total_attempts == 2


async def test_list_courses_hides_site_course(fake_moodle):
    client = fake_moodle({"core_course_get_courses": [{"id": 1, "fullname": "Site"}] + COURSE})

    courses = await service.list_courses(client)

    assert [c.id for c in courses] == [5]


class SlowSiblingsMoodle:
    """One call fails at once while the others take a while to answer."""

    def __init__(self, failing):
        self.failing = failing
        self.finished = []

    async def call(self, wsfunction, **params):
        if wsfunction == self.failing:
            raise UpstreamError("Moodle Error: boom")
        await asyncio.sleep(0.2)
        self.finished.append(wsfunction)
        return {"quizzes": []} if wsfunction == "mod_quiz_get_quizzes_by_courses" else []


async def test_course_fetch_failure_cancels_sibling_calls():
    client = SlowSiblingsMoodle("core_course_get_courses")

    with pytest.raises(UpstreamError):
        await service.compute_course_performance(client, 5)
    await asyncio.sleep(0.3)

    assert client.finished == []


async def test_user_lookup_failure_cancels_quiz_fetch():
    client = SlowSiblingsMoodle("core_user_get_users_by_field")

    with pytest.raises(UpstreamError):
        await service.compute_student_performance(client, 12, 5)
    await asyncio.sleep(0.3)

    assert client.finished == []


def _single_quiz(grade, sumgrades):
    return _responses(
        mod_quiz_get_quizzes_by_courses={"quizzes": [{"id": 101, "course": 5, "name": "Quiz 1", "grade": grade}]},
        mod_quiz_get_user_attempts={"attempts": [{"id": 1, "attempt": 1, "sumgrades": sumgrades}]},
        core_user_get_users_by_field=[USERS[0]],
    )


@pytest.mark.parametrize(
    "grade, sumgrades, expected",
    [
        (10, 12, 100.0),
        (10, -2, 0.0),
        (0, 8, 8.0),
    ],
)
async def test_course_percentages_clamped_and_zero_grade_defaulted(fake_moodle, grade, sumgrades, expected):
    result = await service.compute_course_performance(fake_moodle(_single_quiz(grade, sumgrades)), 5)

    assert [s.average_score for s in result.students] == [expected, expected]
    assert all(s.quizzes_taken == 1 for s in result.students)


@pytest.mark.parametrize(
    "grade, sumgrades, expected",
    [
        (10, 12, 100.0),
        (10, -2, 0.0),
        (0, 8, 8.0),
    ],
)
async def test_student_percentages_clamped_and_zero_grade_defaulted(fake_moodle, grade, sumgrades, expected):
    result = await service.compute_student_performance(fake_moodle(_single_quiz(grade, sumgrades)), 11, 5)

    assert result.performance.average_score == expected
    assert result.quiz_attempts[0].score == expected
