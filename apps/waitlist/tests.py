import random
from datetime import timedelta
from io import StringIO

from django.conf import settings
from django.core.management import call_command
from django.test import TestCase, override_settings
from django.urls import reverse
from django.utils import timezone
from rest_framework.test import APIClient

from apps.admissions.models import ApplicationStatus
from apps.admissions.services import apply_transition
from apps.classes.services import record_admission, record_withdrawal
from apps.common.exceptions import AlreadyWaitlistedError, NotFoundError
from apps.common.factories import (
	ApplicationFactory,
	ClassCapacityFactory,
	StudentFactory,
	UserFactory,
	application_in_status,
)
from apps.students.services import withdraw_student
from apps.waitlist import services
from apps.waitlist.models import WaitlistEntry, WaitlistStatus


def positions(class_name):
	return list(
		WaitlistEntry.objects.filter(class_name=class_name).order_by("position").values_list("position", flat=True)
	)


class WaitlistQueueTests(TestCase):
	def setUp(self):
		ClassCapacityFactory(class_name="Class 5", section="A", total_seats=40)
		ClassCapacityFactory(class_name="Class 6", section="A", total_seats=35)
		self.now = timezone.now()

	def test_enqueue_appends_at_the_tail(self):
		apps = [ApplicationFactory() for _ in range(3)]
		entries = [services.enqueue(app.pk, "Class 5", now=self.now) for app in apps]
		self.assertEqual([entry.position for entry in entries], [1, 2, 3])
		self.assertTrue(all(entry.status == WaitlistStatus.WAITING for entry in entries))

	def test_classes_are_queued_independently(self):
		services.enqueue(ApplicationFactory().pk, "Class 5")
		entry = services.enqueue(ApplicationFactory(class_name="Class 6").pk, "Class 6")
		self.assertEqual(entry.position, 1)

	def test_enqueue_twice_fails(self):
		application = ApplicationFactory()
		services.enqueue(application.pk, "Class 5")
		with self.assertRaises(AlreadyWaitlistedError) as ctx:
			services.enqueue(application.pk, "Class 5")
		self.assertEqual(ctx.exception.details["position"], 1)

	def test_enqueue_unknown_class_fails(self):
		with self.assertRaises(NotFoundError):
			services.enqueue(ApplicationFactory().pk, "Class 42")

	def test_remove_recompacts_following_entries(self):
		apps = [ApplicationFactory() for _ in range(4)]
		for app in apps:
			services.enqueue(app.pk, "Class 5")

		removed = services.remove(apps[1].pk)

		self.assertEqual(removed.position, 2)
		order = list(
			WaitlistEntry.objects.filter(class_name="Class 5")
			.order_by("position")
			.values_list("application_id", "position")
		)
		self.assertEqual(order, [(apps[0].pk, 1), (apps[2].pk, 2), (apps[3].pk, 3)])

	def test_remove_missing_entry_is_a_noop(self):
		self.assertIsNone(services.remove(ApplicationFactory().pk))

	def test_positions_stay_contiguous_under_random_operations(self):
		rng = random.Random(20240611)
		pool = [ApplicationFactory() for _ in range(12)]
		queued = []
		for _ in range(80):
			if queued and (len(queued) == len(pool) or rng.random() < 0.45):
				application = rng.choice(queued)
				services.remove(application.pk, reoffer=rng.random() < 0.5, now=self.now)
				queued.remove(application)
			else:
				application = rng.choice([app for app in pool if app not in queued])
				services.enqueue(application.pk, "Class 5", now=self.now)
				queued.append(application)
			self.assertEqual(positions("Class 5"), list(range(1, len(queued) + 1)))

		order = list(
			WaitlistEntry.objects.filter(class_name="Class 5")
			.order_by("position")
			.values_list("application_id", flat=True)
		)
		self.assertEqual(order, [app.pk for app in queued])

	def test_transfer_moves_entry_to_tail_of_other_class(self):
		apps = [ApplicationFactory() for _ in range(3)]
		for app in apps:
			services.enqueue(app.pk, "Class 5")
		services.enqueue(ApplicationFactory(class_name="Class 6").pk, "Class 6")

		moved = services.transfer(apps[0].pk, "Class 6", now=self.now)

		self.assertEqual((moved.class_name, moved.position, moved.added_at), ("Class 6", 2, self.now))
		self.assertEqual(positions("Class 5"), [1, 2])
		self.assertEqual(WaitlistEntry.objects.get(application=apps[1]).position, 1)

	def test_transfer_to_unknown_class_keeps_entry(self):
		application = ApplicationFactory()
		services.enqueue(application.pk, "Class 5")
		with self.assertRaises(NotFoundError):
			services.transfer(application.pk, "Class 42")
		self.assertEqual(WaitlistEntry.objects.get(application=application).class_name, "Class 5")

	def test_transfer_without_entry_is_a_noop(self):
		self.assertIsNone(services.transfer(ApplicationFactory().pk, "Class 6"))

	def test_counts(self):
		for _ in range(2):
			services.enqueue(ApplicationFactory().pk, "Class 5")
		services.enqueue(ApplicationFactory().pk, "Class 6")
		self.assertEqual(services.waitlist_counts(), {"Class 5": 2, "Class 6": 1})
		self.assertEqual(services.waitlist_count("Class 5"), 2)


class WaitlistOfferTests(TestCase):
	def setUp(self):
		ClassCapacityFactory(class_name="Class 5", section="A", total_seats=40)
		self.now = timezone.now()
		self.apps = [ApplicationFactory() for _ in range(3)]
		for app in self.apps:
			services.enqueue(app.pk, "Class 5", now=self.now)

	def entry(self, application):
		return WaitlistEntry.objects.get(application=application)

	def test_promote_head_offers_with_deadline(self):
		head = services.promote_head("Class 5", now=self.now)

		self.assertEqual(head.application_id, self.apps[0].pk)
		self.assertEqual(head.status, WaitlistStatus.OFFERED)
		self.assertEqual(head.offered_at, self.now)
		self.assertEqual(head.offer_expires_at, self.now + settings.WAITLIST_OFFER_WINDOW)
		self.assertEqual(self.entry(self.apps[1]).status, WaitlistStatus.WAITING)

	def test_promote_head_keeps_an_existing_offer(self):
		services.promote_head("Class 5", now=self.now)
		later = self.now + timedelta(hours=1)
		head = services.promote_head("Class 5", now=later)
		self.assertEqual(head.offered_at, self.now)

	def test_promote_head_on_empty_queue_is_a_noop(self):
		ClassCapacityFactory(class_name="Class 7", section="A", total_seats=30)
		self.assertIsNone(services.promote_head("Class 7", now=self.now))

	def test_offer_is_kept_before_the_deadline(self):
		services.promote_head("Class 5", now=self.now)
		expired = services.expire_offers(now=self.now + settings.WAITLIST_OFFER_WINDOW - timedelta(seconds=1))
		self.assertEqual(expired, [])
		self.assertEqual(self.entry(self.apps[0]).status, WaitlistStatus.OFFERED)

	def test_lapsed_offer_passes_to_next_applicant(self):
		services.promote_head("Class 5", now=self.now)
		deadline = self.now + settings.WAITLIST_OFFER_WINDOW

		expired = services.expire_offers(now=deadline)

		self.assertEqual(len(expired), 1)
		self.assertEqual(expired[0].application_id, self.apps[0].pk)
		self.assertEqual(expired[0].status, WaitlistStatus.EXPIRED)
		self.assertFalse(WaitlistEntry.objects.filter(application=self.apps[0]).exists())
		self.assertEqual(positions("Class 5"), [1, 2])
		head = self.entry(self.apps[1])
		self.assertEqual(head.position, 1)
		self.assertEqual(head.status, WaitlistStatus.OFFERED)
		self.assertEqual(head.offer_expires_at, deadline + settings.WAITLIST_OFFER_WINDOW)
		self.assertEqual(self.entry(self.apps[2]).status, WaitlistStatus.WAITING)

	@override_settings(WAITLIST_OFFER_WINDOW=timedelta(0))
	def test_expiry_cascades_until_the_queue_is_empty(self):
		services.promote_head("Class 5", now=self.now)
		expired = services.expire_offers(now=self.now)
		self.assertEqual([entry.application_id for entry in expired], [app.pk for app in self.apps])
		self.assertEqual(positions("Class 5"), [])

	def test_withdrawn_offer_holder_passes_the_seat_on(self):
		services.promote_head("Class 5", now=self.now)
		services.remove(self.apps[0].pk, reoffer=True, now=self.now)
		self.assertEqual(self.entry(self.apps[1]).status, WaitlistStatus.OFFERED)

	def test_accepted_offer_does_not_promote(self):
		services.promote_head("Class 5", now=self.now)
		services.remove(self.apps[0].pk, now=self.now)
		self.assertEqual(self.entry(self.apps[1]).status, WaitlistStatus.WAITING)

	def test_read_sweeps_lapsed_offers(self):
		services.promote_head("Class 5", now=self.now)
		entries = list(services.entries_for_class("Class 5", now=self.now + settings.WAITLIST_OFFER_WINDOW))
		self.assertEqual([entry.application_id for entry in entries], [self.apps[1].pk, self.apps[2].pk])
		self.assertEqual(entries[0].status, WaitlistStatus.OFFERED)

	def test_expire_command(self):
		services.promote_head("Class 5", now=self.now - settings.WAITLIST_OFFER_WINDOW - timedelta(minutes=5))
		out = StringIO()
		call_command("expire_waitlist_offers", "--class", "Class 5", stdout=out)
		self.assertIn("Expired 1 waitlist offers.", out.getvalue())
		self.assertEqual(self.entry(self.apps[1]).status, WaitlistStatus.OFFERED)


class SeatReleaseTests(TestCase):
	def test_student_withdrawal_offers_seat_to_head_only(self):
		ClassCapacityFactory(class_name="Class 5", section="A", total_seats=40)
		student = StudentFactory(class_name="Class 5", section="A", roll_number=1)
		record_admission("Class 5", "A")
		first = application_in_status(ApplicationStatus.WAITLISTED, class_name="Class 5")
		second = application_in_status(ApplicationStatus.WAITLISTED, class_name="Class 5")
		now = timezone.now()

		withdraw_student(student, "registrar", now=now)

		head = WaitlistEntry.objects.get(application=first)
		self.assertEqual(head.position, 1)
		self.assertEqual(head.status, WaitlistStatus.OFFERED)
		self.assertEqual(head.offer_expires_at, now + settings.WAITLIST_OFFER_WINDOW)
		other = WaitlistEntry.objects.get(application=second)
		self.assertEqual((other.position, other.status, other.offered_at), (2, WaitlistStatus.WAITING, None))

	def test_second_freed_seat_waits_for_the_open_offer(self):
		ClassCapacityFactory(class_name="Class 5", section="A", total_seats=40, filled_seats=2)
		first = application_in_status(ApplicationStatus.WAITLISTED, class_name="Class 5")
		second = application_in_status(ApplicationStatus.WAITLISTED, class_name="Class 5")

		record_withdrawal("Class 5", "A")
		record_withdrawal("Class 5", "A")

		self.assertEqual(WaitlistEntry.objects.get(application=first).status, WaitlistStatus.OFFERED)
		self.assertEqual(WaitlistEntry.objects.get(application=second).status, WaitlistStatus.WAITING)

	def test_rejecting_the_offer_holder_reoffers(self):
		ClassCapacityFactory(class_name="Class 5", section="A", total_seats=40)
		first = application_in_status(ApplicationStatus.WAITLISTED, class_name="Class 5")
		second = application_in_status(ApplicationStatus.WAITLISTED, class_name="Class 5")
		services.promote_head("Class 5")

		apply_transition(first, ApplicationStatus.REJECTED, "registrar")

		head = WaitlistEntry.objects.get(application=second)
		self.assertEqual((head.position, head.status), (1, WaitlistStatus.OFFERED))


class WaitlistApiTests(TestCase):
	def setUp(self):
		ClassCapacityFactory(class_name="Class 5", section="A", total_seats=40)
		self.client = APIClient()
		self.client.force_authenticate(UserFactory())

	def test_lists_entries_by_position(self):
		apps = [application_in_status(ApplicationStatus.WAITLISTED, class_name="Class 5") for _ in range(2)]
		response = self.client.get(reverse("waitlist:waitlist_list"), {"class": "Class 5"})
		self.assertEqual(response.status_code, 200)
		self.assertEqual([row["position"] for row in response.data], [1, 2])
		self.assertEqual(response.data[0]["application_id"], str(apps[0].pk))
		self.assertEqual(response.data[0]["application_number"], apps[0].application_number)

	def test_class_is_required(self):
		response = self.client.get(reverse("waitlist:waitlist_list"))
		self.assertEqual(response.status_code, 400)
