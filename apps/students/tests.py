from django.test import TestCase
from django.urls import reverse
from rest_framework.test import APIClient

from apps.admissions.models import ApplicationStatus
from apps.classes.models import ClassCapacity
from apps.common.exceptions import AdmissionError, RollNumberConflictError
from apps.common.factories import (
	ClassCapacityFactory,
	StudentFactory,
	UserFactory,
	application_in_status,
)
from apps.students import services
from apps.students.models import Student, StudentStatus


class RollNumberTests(TestCase):
	def test_first_roll_number_is_one(self):
		self.assertEqual(services.next_roll_number("Class 5", "A"), 1)

	def test_next_roll_number_uses_active_students_of_the_section(self):
		StudentFactory(class_name="Class 5", section="A", roll_number=4)
		StudentFactory(class_name="Class 5", section="A", roll_number=9, status=StudentStatus.WITHDRAWN)
		StudentFactory(class_name="Class 5", section="B", roll_number=20)
		StudentFactory(class_name="Class 6", section="A", roll_number=30)
		self.assertEqual(services.next_roll_number("Class 5", "A"), 5)

	def test_withdrawn_roll_number_can_be_reused(self):
		StudentFactory(class_name="Class 5", section="A", roll_number=1, status=StudentStatus.WITHDRAWN)
		StudentFactory(class_name="Class 5", section="A", roll_number=1)
		self.assertFalse(services.roll_number_taken("Class 5", "B", 1))
		self.assertTrue(services.roll_number_taken("Class 5", "A", 1))

	def test_register_student_maps_duplicate_roll_number(self):
		ClassCapacityFactory(class_name="Class 5", section="A", total_seats=40)
		StudentFactory(class_name="Class 5", section="A", roll_number=3)
		application = application_in_status(ApplicationStatus.APPROVED, class_name="Class 5")

		with self.assertRaises(RollNumberConflictError) as ctx:
			services.register_student(application, section="A", roll_number=3, blood_group="O+")
		self.assertEqual(ctx.exception.details["roll_number"], 3)
		self.assertEqual(Student.objects.filter(class_name="Class 5", section="A").count(), 1)


class WithdrawalTests(TestCase):
	def setUp(self):
		self.capacity = ClassCapacityFactory(class_name="Class 5", section="A", total_seats=40, filled_seats=1)
		self.student = StudentFactory(class_name="Class 5", section="A", roll_number=1)

	def test_withdraw_releases_the_seat(self):
		student = services.withdraw_student(self.student, "registrar")
		self.assertEqual(student.status, StudentStatus.WITHDRAWN)
		self.assertIsNotNone(student.withdrawn_at)
		self.assertEqual(ClassCapacity.objects.get(pk=self.capacity.pk).filled_seats, 0)

	def test_withdrawing_twice_fails(self):
		services.withdraw_student(self.student, "registrar")
		with self.assertRaises(AdmissionError):
			services.withdraw_student(self.student, "registrar")
		self.assertEqual(ClassCapacity.objects.get(pk=self.capacity.pk).filled_seats, 0)


class StudentApiTests(TestCase):
	def setUp(self):
		self.client = APIClient()
		self.client.force_authenticate(UserFactory())

	def test_next_roll_number(self):
		StudentFactory(class_name="Class 5", section="A", roll_number=7)
		response = self.client.get(reverse("students:next_roll_number"), {"class": "Class 5", "section": "A"})
		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data["next_roll_number"], 8)

	def test_next_roll_number_requires_class_and_section(self):
		response = self.client.get(reverse("students:next_roll_number"), {"class": "Class 5"})
		self.assertEqual(response.status_code, 400)
		self.assertIn("section", response.data["details"])

	def test_withdraw(self):
		ClassCapacityFactory(class_name="Class 5", section="A", total_seats=40, filled_seats=1)
		student = StudentFactory(class_name="Class 5", section="A", roll_number=1)
		response = self.client.post(reverse("students:student_withdraw", kwargs={"pk": student.pk}))
		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data["status"], StudentStatus.WITHDRAWN)

	def test_withdraw_unknown_student(self):
		response = self.client.post(reverse("students:student_withdraw", kwargs={"pk": 9999}))
		self.assertEqual(response.status_code, 404)
