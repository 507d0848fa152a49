import threading
import unittest
from unittest import mock

from django.db import connection
from django.test import TestCase, TransactionTestCase
from django.urls import reverse
from django.utils import timezone
from rest_framework.test import APIClient

from apps.admissions.models import Application, ApplicationStatus
from apps.admissions.services import apply_transition, delete_application, update_application
from apps.classes.models import ClassCapacity
from apps.common.exceptions import (
	CapacityExceededError,
	ConcurrentModificationError,
	InvalidTransitionError,
	ProtectedApplicationError,
	RollNumberConflictError,
)
from apps.common.factories import (
	ClassCapacityFactory,
	StudentFactory,
	UserFactory,
	application_in_status,
)
from apps.enrollments.services import finalize
from apps.students.models import Student
from apps.waitlist.models import WaitlistEntry

S = ApplicationStatus


class FinalizeTests(TestCase):
	def setUp(self):
		self.capacity = ClassCapacityFactory(class_name="Class 5", section="A", total_seats=40)

	def assertUnchanged(self, application, filled_seats=0):
		application.refresh_from_db()
		self.assertEqual(application.status, S.APPROVED)
		self.assertIsNone(application.enrolled_student_id)
		self.assertEqual(ClassCapacity.objects.get(pk=self.capacity.pk).filled_seats, filled_seats)
		self.assertFalse(Student.objects.filter(name=application.student_name).exists())

	def test_finalize_enrolls_approved_application(self):
		application = application_in_status(S.APPROVED, class_name="Class 5")
		version = application.version
		now = timezone.now()

		student, application = finalize(
			application.pk, section="A", blood_group="B+", actor="registrar", now=now
		)

		self.assertEqual(student.roll_number, 1)
		self.assertEqual(student.admission_number, f"ADM{now.year}0001")
		self.assertEqual((student.class_name, student.section), ("Class 5", "A"))
		self.assertEqual(student.name, application.student_name)
		self.assertEqual(application.status, S.ENROLLED)
		self.assertEqual(application.enrolled_student_id, student.pk)
		self.assertEqual(application.version, version + 1)
		last = application.status_history.last()
		self.assertEqual((last.from_status, last.to_status, last.changed_by), (S.APPROVED, S.ENROLLED, "registrar"))
		self.assertEqual(ClassCapacity.objects.get(pk=self.capacity.pk).filled_seats, 1)

	def test_roll_numbers_are_assigned_in_order(self):
		StudentFactory(class_name="Class 5", section="A", roll_number=12)
		first = application_in_status(S.APPROVED, class_name="Class 5")
		second = application_in_status(S.APPROVED, class_name="Class 5")

		student_a, _ = finalize(first.pk, section="A", blood_group="O+", actor="registrar")
		student_b, _ = finalize(second.pk, section="A", blood_group="O-", actor="registrar")

		self.assertEqual((student_a.roll_number, student_b.roll_number), (13, 14))

	def test_explicit_roll_number_conflict(self):
		StudentFactory(class_name="Class 5", section="A", roll_number=5)
		application = application_in_status(S.APPROVED, class_name="Class 5")

		with self.assertRaises(RollNumberConflictError):
			finalize(application.pk, section="A", roll_number=5, blood_group="A+", actor="registrar")
		self.assertUnchanged(application)

	def test_allocated_roll_number_collision_rolls_back(self):
		# A racing enrollment that already took the allocated number surfaces as a conflict.
		StudentFactory(class_name="Class 5", section="A", roll_number=5)
		application = application_in_status(S.APPROVED, class_name="Class 5")
		version = application.version

		with mock.patch("apps.students.services.next_roll_number", return_value=5):
			with self.assertRaises(RollNumberConflictError) as ctx:
				finalize(application.pk, section="A", blood_group="A+", actor="registrar")

		self.assertEqual(ctx.exception.details["roll_number"], 5)
		self.assertUnchanged(application)
		self.assertEqual(application.version, version)
		self.assertEqual(application.status_history.last().to_status, S.APPROVED)
		self.assertEqual(Student.objects.filter(class_name="Class 5", section="A", roll_number=5).count(), 1)

	def test_explicit_roll_number_is_used(self):
		application = application_in_status(S.APPROVED, class_name="Class 5")
		student, _ = finalize(application.pk, section="A", roll_number=21, blood_group="A+", actor="registrar")
		self.assertEqual(student.roll_number, 21)

	def test_only_approved_applications_can_be_enrolled(self):
		application = application_in_status(S.INTERVIEW, class_name="Class 5")
		with self.assertRaises(InvalidTransitionError):
			finalize(application.pk, section="A", blood_group="A+", actor="registrar")
		self.assertEqual(ClassCapacity.objects.get(pk=self.capacity.pk).filled_seats, 0)

	def test_full_section_then_waitlist(self):
		ClassCapacity.objects.filter(pk=self.capacity.pk).update(filled_seats=40)
		for _ in range(2):
			application_in_status(S.WAITLISTED, class_name="Class 5")
		waitlist_count = WaitlistEntry.objects.filter(class_name="Class 5").count()

		approved = application_in_status(S.APPROVED, class_name="Class 5")
		with self.assertRaises(CapacityExceededError):
			finalize(approved.pk, section="A", blood_group="A+", actor="registrar")
		self.assertUnchanged(approved, filled_seats=40)

		candidate = application_in_status(S.INTERVIEW, class_name="Class 5")
		candidate, _ = apply_transition(candidate, S.WAITLISTED, "registrar")
		self.assertEqual(candidate.waitlist_position, waitlist_count + 1)

	def test_failed_student_registration_rolls_back(self):
		application = application_in_status(S.APPROVED, class_name="Class 5")
		with mock.patch(
			"apps.students.services.register_student", side_effect=RuntimeError("registry unavailable")
		):
			with self.assertRaises(RuntimeError):
				finalize(application.pk, section="A", blood_group="A+", actor="registrar")
		self.assertUnchanged(application)

	def test_failed_transition_rolls_back_student_and_seat(self):
		application = application_in_status(S.APPROVED, class_name="Class 5")
		conflict = ConcurrentModificationError(application.pk, application.version, application.version + 1)
		with mock.patch("apps.enrollments.services.apply_transition", side_effect=conflict):
			with self.assertRaises(ConcurrentModificationError):
				finalize(application.pk, section="A", blood_group="A+", actor="registrar")
		self.assertUnchanged(application)
		self.assertFalse(Student.objects.exists())

	def test_enrolled_is_terminal_and_protected(self):
		application = application_in_status(S.APPROVED, class_name="Class 5")
		_, application = finalize(application.pk, section="A", blood_group="A+", actor="registrar")

		for target in S.values:
			with self.subTest(target=target):
				with self.assertRaises(InvalidTransitionError):
					apply_transition(application, target, "registrar")
		with self.assertRaises(ProtectedApplicationError):
			delete_application(application)

	def test_enrolled_application_keeps_its_class(self):
		ClassCapacityFactory(class_name="Class 6", section="A", total_seats=35)
		application = application_in_status(S.APPROVED, class_name="Class 5")
		_, application = finalize(application.pk, section="A", blood_group="A+", actor="registrar")

		with self.assertRaises(ProtectedApplicationError):
			update_application(application, {"class_name": "Class 6"}, "registrar")
		updated = update_application(application, {"phone": "9123456780"}, "registrar")
		self.assertEqual((updated.class_name, updated.phone), ("Class 5", "9123456780"))

	def test_enrolled_student_is_set_only_for_enrolled_applications(self):
		for status in (S.APPLIED, S.APPROVED, S.WAITLISTED, S.REJECTED):
			application_in_status(status, class_name="Class 5")
		approved = application_in_status(S.APPROVED, class_name="Class 5")
		finalize(approved.pk, section="A", blood_group="AB+", actor="registrar")

		for application in Application.objects.all():
			self.assertEqual(application.enrolled_student_id is not None, application.status == S.ENROLLED)


class EnrollApiTests(TestCase):
	def setUp(self):
		ClassCapacityFactory(class_name="Class 5", section="A", total_seats=1)
		self.client = APIClient()
		self.client.force_authenticate(UserFactory(username="registrar"))

	def post(self, payload):
		return self.client.post(reverse("enrollments:enroll"), payload, format="json")

	def test_enroll(self):
		application = application_in_status(S.APPROVED, class_name="Class 5")
		response = self.post({"application_id": str(application.pk), "section": "A", "blood_group": "O+"})
		self.assertEqual(response.status_code, 201)
		self.assertEqual(response.data["student"]["roll_number"], 1)
		self.assertEqual(response.data["application"]["status"], S.ENROLLED)
		self.assertEqual(response.data["application"]["status_history"][-1]["changed_by"], "registrar")

	def test_enroll_into_full_section(self):
		first = application_in_status(S.APPROVED, class_name="Class 5")
		second = application_in_status(S.APPROVED, class_name="Class 5")
		self.post({"application_id": str(first.pk), "section": "A", "blood_group": "O+"})

		response = self.post({"application_id": str(second.pk), "section": "A", "blood_group": "O+"})

		self.assertEqual(response.status_code, 409)
		self.assertEqual(response.data["error"], "CAPACITY_EXCEEDED")

	def test_enroll_validates_payload(self):
		response = self.post({"application_id": "not-a-uuid", "section": "A", "blood_group": "Z"})
		self.assertEqual(response.status_code, 400)


@unittest.skipUnless(connection.vendor == "postgresql", "needs row-level locks")
class ConcurrentEnrollmentTests(TransactionTestCase):
	def test_parallel_enrollments_get_distinct_roll_numbers(self):
		ClassCapacityFactory(class_name="Class 5", section="A", total_seats=40)
		applications = [application_in_status(S.APPROVED, class_name="Class 5") for _ in range(4)]
		barrier = threading.Barrier(len(applications))
		errors = []

		def enroll(application_id):
			try:
				barrier.wait()
				finalize(application_id, section="A", blood_group="A+", actor="registrar")
			except Exception as exc:
				errors.append(exc)
			finally:
				connection.close()

		threads = [threading.Thread(target=enroll, args=(app.pk,)) for app in applications]
		for thread in threads:
			thread.start()
		for thread in threads:
			thread.join()

		self.assertEqual(errors, [])
		rolls = sorted(Student.objects.filter(class_name="Class 5", section="A").values_list("roll_number", flat=True))
		self.assertEqual(rolls, [1, 2, 3, 4])
		self.assertEqual(ClassCapacity.objects.get(class_name="Class 5", section="A").filled_seats, 4)
