from django.db import IntegrityError, transaction
from django.test import TestCase
from django.urls import reverse
from rest_framework.test import APIClient

from apps.admissions.models import ApplicationStatus
from apps.classes import services
from apps.classes.models import ClassCapacity
from apps.common.exceptions import CapacityExceededError, NoSeatsToReleaseError, NotFoundError
from apps.common.factories import ClassCapacityFactory, UserFactory, application_in_status
from apps.waitlist.models import WaitlistEntry, WaitlistStatus


class CapacityLedgerTests(TestCase):
	def setUp(self):
		self.capacity = ClassCapacityFactory(class_name="Class 5", section="A", total_seats=2)

	def assertConserved(self, capacity):
		capacity.refresh_from_db()
		self.assertEqual(capacity.filled_seats + capacity.available_seats, capacity.total_seats)
		self.assertGreaterEqual(capacity.available_seats, 0)

	def test_record_admission_takes_a_seat(self):
		capacity = services.record_admission("Class 5", "A")
		self.assertEqual(capacity.filled_seats, 1)
		self.assertEqual(capacity.available_seats, 1)
		self.assertConserved(self.capacity)

	def test_full_section_rejects_admission(self):
		services.record_admission("Class 5", "A")
		services.record_admission("Class 5", "A")
		with self.assertRaises(CapacityExceededError) as ctx:
			services.record_admission("Class 5", "A")
		self.assertEqual(ctx.exception.details["total_seats"], 2)
		self.assertEqual(ctx.exception.details["filled_seats"], 2)
		self.capacity.refresh_from_db()
		self.assertEqual(self.capacity.filled_seats, 2)
		self.assertConserved(self.capacity)

	def test_record_withdrawal_releases_a_seat(self):
		services.record_admission("Class 5", "A")
		capacity = services.record_withdrawal("Class 5", "A")
		self.assertEqual(capacity.filled_seats, 0)
		self.assertConserved(self.capacity)

	def test_empty_section_has_nothing_to_release(self):
		with self.assertRaises(NoSeatsToReleaseError):
			services.record_withdrawal("Class 5", "A")

	def test_unknown_section(self):
		with self.assertRaises(NotFoundError):
			services.record_admission("Class 5", "Z")
		with self.assertRaises(NotFoundError):
			services.available_seats("Class 9", "A")

	def test_withdrawal_in_any_section_promotes_class_waitlist(self):
		ClassCapacityFactory(class_name="Class 5", section="B", total_seats=30, filled_seats=30)
		application = application_in_status(ApplicationStatus.WAITLISTED, class_name="Class 5")

		services.record_withdrawal("Class 5", "B")

		entry = WaitlistEntry.objects.get(application=application)
		self.assertEqual(entry.status, WaitlistStatus.OFFERED)

	def test_withdrawal_without_waitlist_only_releases(self):
		services.record_admission("Class 5", "A")
		services.record_withdrawal("Class 5", "A")
		self.assertFalse(WaitlistEntry.objects.exists())

	def test_database_rejects_overfilled_section(self):
		with self.assertRaises(IntegrityError):
			with transaction.atomic():
				ClassCapacity.objects.filter(pk=self.capacity.pk).update(filled_seats=3)

	def test_class_rollup_sums_sections(self):
		ClassCapacityFactory(class_name="Class 5", section="B", total_seats=35, filled_seats=10)
		ClassCapacityFactory(class_name="Class 6", section="A", total_seats=30, filled_seats=30)
		application_in_status(ApplicationStatus.WAITLISTED, class_name="Class 5")
		application_in_status(ApplicationStatus.WAITLISTED, class_name="Class 5")

		rollup = {row["class_name"]: row for row in services.class_rollup()}

		self.assertEqual(
			rollup["Class 5"],
			{
				"class_name": "Class 5",
				"total_seats": 37,
				"filled_seats": 10,
				"available_seats": 27,
				"waitlist_count": 2,
			},
		)
		self.assertEqual(rollup["Class 6"]["available_seats"], 0)
		self.assertEqual(rollup["Class 6"]["waitlist_count"], 0)


class CapacityApiTests(TestCase):
	def setUp(self):
		ClassCapacityFactory(class_name="Class 5", section="A", total_seats=40, filled_seats=40)
		ClassCapacityFactory(class_name="Class 5", section="B", total_seats=45, filled_seats=20)
		application_in_status(ApplicationStatus.WAITLISTED, class_name="Class 5")
		self.client = APIClient()
		self.client.force_authenticate(UserFactory())

	def test_capacity_rows(self):
		response = self.client.get(reverse("classes:capacity_list"))
		self.assertEqual(response.status_code, 200)
		rows = [
			(row["section"], row["available_seats"], row["waitlist_count"]) for row in response.data
		]
		self.assertEqual(rows, [("A", 0, 1), ("B", 25, 1)])

	def test_summary(self):
		response = self.client.get(reverse("classes:capacity_summary"))
		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data[0]["total_seats"], 85)
		self.assertEqual(response.data[0]["waitlist_count"], 1)
