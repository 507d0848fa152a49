from django.db import IntegrityError, transaction
from django.test import TestCase
from django.urls import reverse
from rest_framework.test import APIClient

from apps.admissions.models import Application, ApplicationStatus, StatusChange
from apps.admissions.services import (
	add_note,
	application_stats,
	apply_transition,
	create_application,
	delete_application,
	update_application,
)
from apps.admissions.transitions import (
	TERMINAL_STATUSES,
	TRANSITIONS,
	allowed_targets,
	can_transition,
	is_terminal,
)
from apps.common.exceptions import (
	AdmissionError,
	ConcurrentModificationError,
	InvalidTransitionError,
	NotFoundError,
)
from apps.common.factories import (
	PATHS,
	ApplicationFactory,
	ClassCapacityFactory,
	UserFactory,
	advance_application,
	application_in_status,
)
from apps.waitlist.models import WaitlistEntry, WaitlistStatus
from apps.waitlist.services import promote_head

S = ApplicationStatus

# The admissions office workflow, written out independently of TRANSITIONS.
WORKFLOW = {
	"applied": {"under_review", "rejected", "withdrawn"},
	"under_review": {"document_verification", "rejected", "withdrawn"},
	"document_verification": {"entrance_exam", "interview", "rejected", "withdrawn"},
	"entrance_exam": {"interview", "approved", "rejected", "withdrawn"},
	"interview": {"approved", "waitlisted", "rejected", "withdrawn"},
	"approved": {"enrolled", "withdrawn"},
	"waitlisted": {"approved", "rejected", "withdrawn"},
	"rejected": set(),
	"enrolled": set(),
	"withdrawn": set(),
}


class TransitionTableTests(TestCase):
	def test_every_status_has_a_row(self):
		self.assertEqual(set(TRANSITIONS), set(S.values))

	def test_table_matches_the_workflow_for_every_pair(self):
		self.assertEqual(set(WORKFLOW), set(S.values))
		for current in S.values:
			for target in S.values:
				with self.subTest(current=current, target=target):
					self.assertEqual(can_transition(current, target), target in WORKFLOW[current])

	def test_terminal_statuses(self):
		self.assertEqual(TERMINAL_STATUSES, {S.REJECTED, S.ENROLLED, S.WITHDRAWN})
		for status in S.values:
			self.assertEqual(is_terminal(status), status in TERMINAL_STATUSES)

	def test_allowed_targets_follow_declaration_order(self):
		self.assertEqual(
			allowed_targets(S.INTERVIEW),
			[S.APPROVED, S.WAITLISTED, S.REJECTED, S.WITHDRAWN],
		)
		self.assertEqual(allowed_targets(S.ENROLLED), [])

	def test_no_edge_leads_back_to_applied(self):
		for status in S.values:
			self.assertFalse(can_transition(status, S.APPLIED))


class ApplyTransitionTests(TestCase):
	def setUp(self):
		ClassCapacityFactory(class_name="Class 5", section="A", total_seats=40)

	def test_create_application_starts_applied_with_history(self):
		application = create_application(
			{"student_name": "Asha Verma", "class_name": "Class 5", "status": S.APPROVED, "version": 9}
		)
		self.assertEqual(application.status, S.APPLIED)
		self.assertEqual(application.version, 1)
		self.assertTrue(application.application_number.startswith("APP"))
		history = list(application.status_history.all())
		self.assertEqual(len(history), 1)
		self.assertIsNone(history[0].from_status)
		self.assertEqual(history[0].to_status, S.APPLIED)
		self.assertEqual(history[0].changed_by, "System")
		self.assertEqual(history[0].note, "Application submitted")

	def test_application_numbers_are_sequential(self):
		first = ApplicationFactory()
		second = ApplicationFactory()
		self.assertEqual(int(second.application_number[-4:]), int(first.application_number[-4:]) + 1)

	def test_every_pair_outside_the_table_is_rejected(self):
		for current in PATHS:
			for target in S.values:
				application = application_in_status(current, class_name="Class 5")
				version = application.version
				history_count = application.status_history.count()
				# enrolled is only reachable through enrollment finalization
				allowed = target in WORKFLOW[current] and target != S.ENROLLED
				with self.subTest(current=current, target=target):
					if allowed:
						updated, change = apply_transition(application, target, "registrar")
						self.assertEqual(updated.status, target)
						self.assertEqual(updated.version, version + 1)
						self.assertEqual(change.from_status, current)
						self.assertEqual(change.to_status, target)
					else:
						with self.assertRaises(InvalidTransitionError):
							apply_transition(application, target, "registrar")
						application.refresh_from_db()
						self.assertEqual(application.status, current)
						self.assertEqual(application.version, version)
						self.assertEqual(application.status_history.count(), history_count)

	def test_entrance_exam_can_be_approved_without_interview(self):
		application = application_in_status(S.ENTRANCE_EXAM, class_name="Class 5")
		application, change = apply_transition(application, S.APPROVED, "registrar", "Exam score 92")
		self.assertEqual(application.status, S.APPROVED)
		self.assertEqual((change.from_status, change.to_status), (S.ENTRANCE_EXAM, S.APPROVED))
		self.assertNotIn(S.INTERVIEW, application.status_history.values_list("to_status", flat=True))

	def test_terminal_statuses_accept_nothing(self):
		for terminal in (S.REJECTED, S.WITHDRAWN):
			application = application_in_status(terminal)
			for target in S.values:
				with self.subTest(current=terminal, target=target):
					with self.assertRaises(InvalidTransitionError):
						apply_transition(application, target, "registrar")

	def test_applied_cannot_jump_to_enrolled(self):
		application = ApplicationFactory()
		with self.assertRaises(InvalidTransitionError) as ctx:
			apply_transition(application, S.ENROLLED, "registrar")
		self.assertEqual(ctx.exception.details["current_status"], S.APPLIED)
		self.assertEqual(ctx.exception.details["requested_status"], S.ENROLLED)
		application.refresh_from_db()
		self.assertEqual(application.status, S.APPLIED)

	def test_approved_to_enrolled_requires_finalization(self):
		application = application_in_status(S.APPROVED)
		with self.assertRaises(InvalidTransitionError):
			apply_transition(application, S.ENROLLED, "registrar")

	def test_same_status_is_rejected(self):
		application = application_in_status(S.UNDER_REVIEW)
		with self.assertRaises(InvalidTransitionError):
			apply_transition(application, S.UNDER_REVIEW, "registrar")

	def test_unknown_status_is_rejected(self):
		application = ApplicationFactory()
		with self.assertRaises(InvalidTransitionError):
			apply_transition(application, "graduated", "registrar")

	def test_stale_version_raises_conflict(self):
		application = ApplicationFactory()
		stale = Application.objects.get(pk=application.pk)

		apply_transition(application, S.UNDER_REVIEW, "officer-1")
		with self.assertRaises(ConcurrentModificationError) as ctx:
			apply_transition(stale, S.REJECTED, "officer-2")

		self.assertEqual(ctx.exception.details["expected_version"], 1)
		self.assertEqual(ctx.exception.details["current_version"], 2)
		application.refresh_from_db()
		self.assertEqual(application.status, S.UNDER_REVIEW)
		self.assertEqual(application.status_history.count(), 2)

	def test_history_records_actor_and_note(self):
		application = ApplicationFactory()
		application = advance_application(application, S.UNDER_REVIEW, S.DOCUMENT_VERIFICATION)
		application, change = apply_transition(
			application, S.REJECTED, "principal", "Documents could not be verified"
		)
		history = list(application.status_history.values_list("from_status", "to_status"))
		self.assertEqual(
			history,
			[
				(None, S.APPLIED),
				(S.APPLIED, S.UNDER_REVIEW),
				(S.UNDER_REVIEW, S.DOCUMENT_VERIFICATION),
				(S.DOCUMENT_VERIFICATION, S.REJECTED),
			],
		)
		self.assertEqual(change.changed_by, "principal")
		self.assertEqual(change.note, "Documents could not be verified")

	def test_waitlisting_enqueues_and_approval_dequeues(self):
		first = application_in_status(S.WAITLISTED, class_name="Class 5")
		second = application_in_status(S.WAITLISTED, class_name="Class 5")
		self.assertEqual(first.waitlist_position, 1)
		self.assertEqual(second.waitlist_position, 2)

		first, _ = apply_transition(first, S.APPROVED, "registrar")
		second.refresh_from_db()
		self.assertIsNone(first.waitlist_position)
		self.assertEqual(second.waitlist_position, 1)

	def test_rejecting_and_withdrawing_recompact_the_waitlist(self):
		apps = [application_in_status(S.WAITLISTED, class_name="Class 5") for _ in range(4)]
		apply_transition(apps[1], S.REJECTED, "registrar")
		apply_transition(apps[0], S.WITHDRAWN, "registrar")

		positions = list(
			WaitlistEntry.objects.filter(class_name="Class 5")
			.order_by("position")
			.values_list("application_id", "position")
		)
		self.assertEqual(positions, [(apps[2].pk, 1), (apps[3].pk, 2)])

	def test_failed_side_effect_leaves_no_trace(self):
		# No capacity rows exist for this class, so enqueueing fails.
		application = application_in_status(S.INTERVIEW, class_name="Class 99")
		version = application.version
		history_count = application.status_history.count()

		with self.assertRaises(NotFoundError):
			apply_transition(application, S.WAITLISTED, "registrar")

		application.refresh_from_db()
		self.assertEqual(application.status, S.INTERVIEW)
		self.assertEqual(application.version, version)
		self.assertEqual(application.status_history.count(), history_count)
		self.assertFalse(WaitlistEntry.objects.filter(application=application).exists())

	def test_status_changes_are_append_only(self):
		application = ApplicationFactory()
		change = application.status_history.get()
		change.note = "rewritten"
		with self.assertRaises(ValueError):
			change.save()
		with self.assertRaises(ValueError):
			change.delete()
		self.assertEqual(StatusChange.objects.get(pk=change.pk).note, "Application submitted")

	def test_enrolled_status_requires_a_student(self):
		application = application_in_status(S.APPROVED)
		with self.assertRaises(IntegrityError):
			with transaction.atomic():
				Application.objects.filter(pk=application.pk).update(status=S.ENROLLED)

	def test_delete_application_recompacts_waitlist(self):
		first = application_in_status(S.WAITLISTED, class_name="Class 5")
		second = application_in_status(S.WAITLISTED, class_name="Class 5")

		delete_application(first)

		self.assertFalse(Application.objects.filter(pk=first.pk).exists())
		self.assertFalse(StatusChange.objects.filter(application_id=first.pk).exists())
		second.refresh_from_db()
		self.assertEqual(second.waitlist_position, 1)

	def test_delete_with_stale_version_keeps_the_application(self):
		application = application_in_status(S.WAITLISTED, class_name="Class 5")
		stale = Application.objects.get(pk=application.pk)
		apply_transition(application, S.REJECTED, "officer-1")

		with self.assertRaises(ConcurrentModificationError):
			delete_application(stale)

		application.refresh_from_db()
		self.assertEqual(application.status, S.REJECTED)
		self.assertEqual(application.status_history.last().to_status, S.REJECTED)

	def test_delete_of_offer_holder_passes_the_offer_on(self):
		first = application_in_status(S.WAITLISTED, class_name="Class 5")
		second = application_in_status(S.WAITLISTED, class_name="Class 5")
		promote_head("Class 5")

		delete_application(first)

		entry = WaitlistEntry.objects.get(application=second)
		self.assertEqual((entry.position, entry.status), (1, WaitlistStatus.OFFERED))

	def test_application_stats(self):
		ApplicationFactory(class_name="Class 5")
		application_in_status(S.UNDER_REVIEW, class_name="Class 5")
		application_in_status(S.REJECTED, class_name="Class 6")

		stats = application_stats()

		self.assertEqual(stats["total"], 3)
		self.assertEqual(stats["pending_review"], 2)
		self.assertEqual(stats["this_month"], 3)
		self.assertEqual(stats["by_status"][S.REJECTED], 1)
		self.assertEqual(stats["by_status"][S.ENROLLED], 0)
		self.assertEqual(stats["by_class"], {"Class 5": 2, "Class 6": 1})


class ApplicationEditTests(TestCase):
	def setUp(self):
		ClassCapacityFactory(class_name="Class 5", section="A", total_seats=40)
		ClassCapacityFactory(class_name="Class 6", section="A", total_seats=35)

	def test_update_changes_details_and_bumps_version(self):
		application = ApplicationFactory(class_name="Class 5")
		updated = update_application(
			application, {"phone": "9876543210", "previous_school": "Greenfield Public School"}, "registrar"
		)
		self.assertEqual(updated.phone, "9876543210")
		self.assertEqual(updated.previous_school, "Greenfield Public School")
		self.assertEqual(updated.version, 2)
		self.assertEqual(updated.status, S.APPLIED)
		self.assertEqual(updated.status_history.count(), 1)

	def test_update_ignores_workflow_fields(self):
		application = ApplicationFactory()
		updated = update_application(application, {"status": S.APPROVED, "version": 9}, "registrar")
		self.assertEqual((updated.status, updated.version), (S.APPLIED, 2))

	def test_stale_update_is_rejected(self):
		application = ApplicationFactory()
		stale = Application.objects.get(pk=application.pk)
		apply_transition(application, S.UNDER_REVIEW, "officer-1")

		with self.assertRaises(ConcurrentModificationError):
			update_application(stale, {"student_name": "Overwritten"}, "officer-2")

		application.refresh_from_db()
		self.assertNotEqual(application.student_name, "Overwritten")

	def test_class_change_moves_waitlist_entry_to_new_queue(self):
		old_queue = [application_in_status(S.WAITLISTED, class_name="Class 5") for _ in range(3)]
		new_queue = application_in_status(S.WAITLISTED, class_name="Class 6")

		moved = update_application(old_queue[1], {"class_name": "Class 6"}, "registrar")

		self.assertEqual(moved.class_name, "Class 6")
		self.assertEqual(moved.waitlist_position, 2)
		self.assertEqual(WaitlistEntry.objects.get(application=new_queue).position, 1)
		remaining = list(
			WaitlistEntry.objects.filter(class_name="Class 5")
			.order_by("position")
			.values_list("application_id", "position")
		)
		self.assertEqual(remaining, [(old_queue[0].pk, 1), (old_queue[2].pk, 2)])

	def test_class_change_of_offer_holder_reoffers_in_old_class(self):
		first = application_in_status(S.WAITLISTED, class_name="Class 5")
		second = application_in_status(S.WAITLISTED, class_name="Class 5")
		promote_head("Class 5")

		update_application(first, {"class_name": "Class 6"}, "registrar")

		moved = WaitlistEntry.objects.get(application=first)
		self.assertEqual((moved.class_name, moved.status), ("Class 6", WaitlistStatus.WAITING))
		self.assertEqual(WaitlistEntry.objects.get(application=second).status, WaitlistStatus.OFFERED)

	def test_class_change_to_unknown_class_rolls_back(self):
		application = application_in_status(S.WAITLISTED, class_name="Class 5")
		version = application.version

		with self.assertRaises(NotFoundError):
			update_application(application, {"class_name": "Class 42", "phone": "1112223333"}, "registrar")

		application.refresh_from_db()
		self.assertEqual((application.class_name, application.version), ("Class 5", version))
		self.assertNotEqual(application.phone, "1112223333")
		self.assertEqual(WaitlistEntry.objects.get(application=application).class_name, "Class 5")

	def test_class_change_outside_waitlist_touches_no_queue(self):
		application = application_in_status(S.INTERVIEW, class_name="Class 5")
		updated = update_application(application, {"class_name": "Class 6"}, "registrar")
		self.assertEqual(updated.class_name, "Class 6")
		self.assertFalse(WaitlistEntry.objects.exists())

	def test_add_note_records_author(self):
		application = ApplicationFactory()
		note = add_note(application, "  Called the parents about the fee waiver.  ", "counsellor")
		self.assertEqual(note.content, "Called the parents about the fee waiver.")
		self.assertEqual(note.created_by, "counsellor")
		self.assertEqual(list(application.notes.all()), [note])
		application.refresh_from_db()
		self.assertEqual(application.version, 1)

	def test_add_note_to_closed_application(self):
		application = application_in_status(S.REJECTED)
		note = add_note(application, "Reapply next year.", "principal")
		self.assertEqual(note.application_id, application.pk)

	def test_empty_note_is_rejected(self):
		application = ApplicationFactory()
		with self.assertRaises(AdmissionError):
			add_note(application, "   ", "counsellor")
		self.assertFalse(application.notes.exists())


class ApplicationApiTests(TestCase):
	def setUp(self):
		ClassCapacityFactory(class_name="Class 5", section="A", total_seats=40)
		self.user = UserFactory(username="registrar")
		self.client = APIClient()
		self.client.force_authenticate(self.user)

	def test_requires_authentication(self):
		response = APIClient().get(reverse("admissions:application_list"))
		self.assertIn(response.status_code, (401, 403))

	def test_create_application(self):
		response = self.client.post(
			reverse("admissions:application_list"),
			{"student_name": "Kabir Rao", "class_name": "Class 5", "father_name": "Vikram Rao"},
			format="json",
		)
		self.assertEqual(response.status_code, 201)
		self.assertEqual(response.data["status"], S.APPLIED)
		self.assertEqual(response.data["version"], 1)
		self.assertEqual(response.data["status_history"][0]["changed_by"], "registrar")

	def test_list_filters_and_paginates(self):
		for _ in range(3):
			ApplicationFactory(class_name="Class 5")
		ApplicationFactory(class_name="Class 6", student_name="Meera Iyer")

		response = self.client.get(reverse("admissions:application_list"), {"class": "Class 5", "limit": 2})
		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data["meta"], {"total": 3, "page": 1, "limit": 2, "totalPages": 2})
		self.assertEqual(len(response.data["data"]), 2)

		response = self.client.get(reverse("admissions:application_list"), {"search": "meera"})
		self.assertEqual([row["student_name"] for row in response.data["data"]], ["Meera Iyer"])

	def test_status_update(self):
		application = ApplicationFactory()
		response = self.client.post(
			reverse("admissions:application_status", kwargs={"pk": application.pk}),
			{"status": S.UNDER_REVIEW, "note": "Picked up", "version": 1},
			format="json",
		)
		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data["status"], S.UNDER_REVIEW)
		self.assertEqual(response.data["version"], 2)
		self.assertEqual(response.data["status_history"][-1]["note"], "Picked up")

	def test_invalid_transition_returns_409(self):
		application = ApplicationFactory()
		response = self.client.post(
			reverse("admissions:application_status", kwargs={"pk": application.pk}),
			{"status": S.ENROLLED},
			format="json",
		)
		self.assertEqual(response.status_code, 409)
		self.assertEqual(response.data["error"], "INVALID_TRANSITION")
		self.assertEqual(response.data["details"]["current_status"], S.APPLIED)

	def test_stale_version_returns_409(self):
		application = advance_application(ApplicationFactory(), S.UNDER_REVIEW)
		response = self.client.post(
			reverse("admissions:application_status", kwargs={"pk": application.pk}),
			{"status": S.DOCUMENT_VERIFICATION, "version": 1},
			format="json",
		)
		self.assertEqual(response.status_code, 409)
		self.assertEqual(response.data["error"], "VERSION_CONFLICT")

	def test_unknown_application_returns_404(self):
		response = self.client.get(
			reverse("admissions:application_detail", kwargs={"pk": "2b1c9d1e-3f9b-4c55-9a40-0d7e1c6a5f10"})
		)
		self.assertEqual(response.status_code, 404)
		self.assertEqual(response.data["error"], "NOT_FOUND")

	def test_transitions_endpoint(self):
		application = application_in_status(S.APPROVED)
		response = self.client.get(reverse("admissions:application_transitions", kwargs={"pk": application.pk}))
		self.assertEqual(response.data, {"status": S.APPROVED, "terminal": False, "allowed": [S.ENROLLED, S.WITHDRAWN]})

	def test_delete(self):
		application = ApplicationFactory()
		response = self.client.delete(reverse("admissions:application_detail", kwargs={"pk": application.pk}))
		self.assertEqual(response.status_code, 204)
		self.assertFalse(Application.objects.filter(pk=application.pk).exists())

	def test_stats(self):
		ApplicationFactory()
		response = self.client.get(reverse("admissions:application_stats"))
		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data["total"], 1)

	def test_delete_with_stale_version_returns_409(self):
		application = advance_application(ApplicationFactory(), S.UNDER_REVIEW)
		url = reverse("admissions:application_detail", kwargs={"pk": application.pk})

		response = self.client.delete(f"{url}?version=1")

		self.assertEqual(response.status_code, 409)
		self.assertEqual(response.data["error"], "VERSION_CONFLICT")
		self.assertTrue(Application.objects.filter(pk=application.pk).exists())

	def test_delete_with_malformed_version(self):
		application = ApplicationFactory()
		url = reverse("admissions:application_detail", kwargs={"pk": application.pk})
		response = self.client.delete(f"{url}?version=latest")
		self.assertEqual(response.status_code, 400)
		self.assertTrue(Application.objects.filter(pk=application.pk).exists())

	def test_update_application(self):
		application = ApplicationFactory()
		response = self.client.put(
			reverse("admissions:application_detail", kwargs={"pk": application.pk}),
			{"email": "parent@example.com", "version": 1},
			format="json",
		)
		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data["email"], "parent@example.com")
		self.assertEqual(response.data["version"], 2)

	def test_update_with_stale_version_returns_409(self):
		application = advance_application(ApplicationFactory(), S.UNDER_REVIEW)
		response = self.client.patch(
			reverse("admissions:application_detail", kwargs={"pk": application.pk}),
			{"phone": "9000000000", "version": 1},
			format="json",
		)
		self.assertEqual(response.status_code, 409)
		self.assertEqual(response.data["error"], "VERSION_CONFLICT")

	def test_notes(self):
		application = ApplicationFactory()
		url = reverse("admissions:application_notes", kwargs={"pk": application.pk})

		response = self.client.post(url, {"content": "Sibling already studies here."}, format="json")
		self.assertEqual(response.status_code, 201)
		self.assertEqual(response.data["created_by"], "registrar")

		response = self.client.get(url)
		self.assertEqual([note["content"] for note in response.data], ["Sibling already studies here."])
		detail = self.client.get(reverse("admissions:application_detail", kwargs={"pk": application.pk}))
		self.assertEqual(len(detail.data["notes"]), 1)

	def test_blank_note_returns_400(self):
		application = ApplicationFactory()
		response = self.client.post(
			reverse("admissions:application_notes", kwargs={"pk": application.pk}), {"content": ""}, format="json"
		)
		self.assertEqual(response.status_code, 400)
