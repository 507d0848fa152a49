import factory
from django.contrib.auth import get_user_model
from faker import Faker

from apps.admissions.models import Application, ApplicationStatus
from apps.admissions.services import apply_transition, create_application
from apps.classes.models import ClassCapacity
from apps.students.models import BloodGroup, Student

User = get_user_model()
fake = Faker()

S = ApplicationStatus

# Shortest workflow path from ``applied`` to each reachable status.
PATHS = {
    S.APPLIED: [],
    S.UNDER_REVIEW: [S.UNDER_REVIEW],
    S.DOCUMENT_VERIFICATION: [S.UNDER_REVIEW, S.DOCUMENT_VERIFICATION],
    S.ENTRANCE_EXAM: [S.UNDER_REVIEW, S.DOCUMENT_VERIFICATION, S.ENTRANCE_EXAM],
    S.INTERVIEW: [S.UNDER_REVIEW, S.DOCUMENT_VERIFICATION, S.INTERVIEW],
    S.APPROVED: [S.UNDER_REVIEW, S.DOCUMENT_VERIFICATION, S.INTERVIEW, S.APPROVED],
    S.WAITLISTED: [S.UNDER_REVIEW, S.DOCUMENT_VERIFICATION, S.INTERVIEW, S.WAITLISTED],
    S.REJECTED: [S.REJECTED],
    S.WITHDRAWN: [S.WITHDRAWN],
}


def _safe_digits(s, max_len=20):
    digits = "".join(ch for ch in str(s) if ch.isdigit())
    return digits[:max_len]


def _safe_text(s, max_len):
    return str(s)[:max_len]


class UserFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = User
        django_get_or_create = ("username",)

    username = factory.Sequence(lambda n: f"officer{n:03d}")
    password = factory.django.Password("password123")
    first_name = factory.LazyAttribute(lambda o: _safe_text(fake.first_name(), 150))
    last_name = factory.LazyAttribute(lambda o: _safe_text(fake.last_name(), 150))
    email = factory.LazyAttribute(lambda o: f"{o.username}@school.test")
    is_staff = True


class ClassCapacityFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = ClassCapacity
        django_get_or_create = ("class_name", "section")

    class_name = factory.Sequence(lambda n: f"Class {n % 12 + 1}")
    section = "A"
    total_seats = factory.LazyFunction(lambda: fake.random_element(elements=(30, 35, 40, 45)))
    filled_seats = 0


class ApplicationFactory(factory.django.DjangoModelFactory):
    """Builds applications through ``create_application`` so each starts in ``applied`` with history."""

    class Meta:
        model = Application

    student_name = factory.LazyAttribute(lambda o: _safe_text(fake.name(), 255))
    date_of_birth = factory.LazyAttribute(lambda o: fake.date_of_birth(minimum_age=4, maximum_age=17))
    gender = factory.LazyAttribute(lambda o: fake.random_element(elements=("male", "female")))
    email = factory.LazyAttribute(lambda o: _safe_text(fake.email(), 254))
    phone = factory.LazyAttribute(lambda o: _safe_digits(fake.phone_number(), 20))
    class_name = "Class 5"
    previous_school = factory.LazyAttribute(lambda o: _safe_text(f"{fake.last_name()} Public School", 255))
    previous_marks = factory.LazyAttribute(
        lambda o: fake.pydecimal(right_digits=2, min_value=40, max_value=99)
    )
    father_name = factory.LazyAttribute(lambda o: _safe_text(fake.name_male(), 255))
    mother_name = factory.LazyAttribute(lambda o: _safe_text(fake.name_female(), 255))
    guardian_phone = factory.LazyAttribute(lambda o: _safe_digits(fake.phone_number(), 20))

    @classmethod
    def _create(cls, model_class, *args, **kwargs):
        actor = kwargs.pop("actor", "System")
        return create_application(kwargs, actor=actor)


class StudentFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = Student

    admission_number = factory.Sequence(lambda n: f"STU{n:05d}")
    name = factory.LazyAttribute(lambda o: _safe_text(fake.name(), 255))
    email = factory.LazyAttribute(lambda o: _safe_text(fake.email(), 254))
    blood_group = factory.LazyAttribute(lambda o: fake.random_element(elements=BloodGroup.values))
    class_name = "Class 5"
    section = "A"
    roll_number = factory.Sequence(lambda n: n + 1)


def advance_application(application, *statuses, actor="System", now=None):
    for target in statuses:
        application, _ = apply_transition(application, target, actor, now=now)
    return application


def application_in_status(status, **kwargs):
    """Create an application and walk it to ``status`` through the workflow."""
    if status not in PATHS:
        raise ValueError(f"'{status}' is only reachable through enrollment finalization")
    application = ApplicationFactory(**kwargs)
    return advance_application(application, *PATHS[status])
