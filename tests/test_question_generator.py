"""Tests for question type selection, prioritization and the question queue."""
import pytest

from uipattern.core.errors import NotFoundError, OrphanedAnswerError
from uipattern.training.models import MatchKind, QuestionStatus, QuestionType, TrainingAnswer
from uipattern.training.question_generator import (
    QuestionGenerator,
    element_signature,
    has_domain_wording,
)
from uipattern.vision.models import ElementType


@pytest.fixture
def generator(settings):
    return QuestionGenerator(settings)


class TestQuestionType:

    def test_first_encounter_asks_purpose(self, generator, make_element):
        question = generator.generate("owner-a", "app-x", make_element(), MatchKind.UNMATCHED)

        assert question.question_type is QuestionType.PURPOSE
        assert question.status is QuestionStatus.PENDING
        assert question.priority > 0
        assert "Submit" in question.prompt

    def test_seen_interactive_element_without_action_asks_action(self, generator, make_element, make_pattern):
        candidates = [make_pattern(action=None, text="Other")]
        question = generator.generate("owner-a", "app-x", make_element(element_type=ElementType.LINK),
                                      MatchKind.UNMATCHED, candidates=candidates, first_encounter=False)
        assert question.question_type is QuestionType.ACTION

    def test_business_wording_asks_context(self, generator, make_element):
        element = make_element(element_type=ElementType.LABEL, text="Approve PO-4471")
        question = generator.choose_type(element, [], first_encounter=False)
        assert question is QuestionType.CONTEXT

    def test_seen_input_asks_what_to_enter(self, generator, make_element):
        element = make_element(element_type=ElementType.INPUT, text="Email")
        assert generator.choose_type(element, [], first_encounter=False) is QuestionType.INPUT

    def test_ambiguous_question_offers_both_candidates(self, generator, store, make_element, make_pattern):
        first = store.insert(make_pattern(purpose="Save draft"))
        second = store.insert(make_pattern(purpose="Save and send"))

        question = generator.generate("owner-a", "app-x", make_element(), MatchKind.AMBIGUOUS,
                                      candidates=[first, second], first_encounter=False)

        assert question.candidate_ids == (first.pattern_id, second.pattern_id)
        assert "Save draft" in question.prompt and "Save and send" in question.prompt

    def test_matched_outcome_is_rejected(self, generator, make_element):
        with pytest.raises(ValueError):
            generator.generate("owner-a", "app-x", make_element(), MatchKind.MATCHED)


class TestDomainWording:

    @pytest.mark.parametrize("text", ["Post to GL", "SKU lookup", "INV-2024-01", "Net 30 terms"])
    def test_detects_business_tokens(self, text):
        assert has_domain_wording(text, domain_terms=["net 30"])

    @pytest.mark.parametrize("text", ["Submit", "Cancel", "OK", None, ""])
    def test_plain_ui_words(self, text):
        assert not has_domain_wording(text)


class TestPriority:

    def test_priority_is_within_bounds(self, generator, make_element):
        tiny = make_element(element_type=ElementType.UNKNOWN, width=1, height=1, confidence=0.0)
        huge = make_element(width=1920, height=1080, confidence=1.0)
        assert generator.priority(tiny) == 1
        assert generator.priority(huge) == 10

    def test_priority_grows_with_box_size(self, generator, make_element):
        sizes = [(10, 10), (60, 20), (120, 40), (400, 200), (900, 600)]
        priorities = [generator.priority(make_element(width=w, height=h)) for w, h in sizes]
        assert priorities == sorted(priorities)
        assert priorities[0] < priorities[-1]

    def test_priority_grows_with_confidence(self, generator, make_element):
        priorities = [generator.priority(make_element(confidence=c)) for c in (0.0, 0.3, 0.6, 1.0)]
        assert priorities == sorted(priorities)
        assert priorities[0] < priorities[-1]

    def test_buttons_rank_above_labels(self, generator, make_element):
        button = generator.priority(make_element(element_type=ElementType.BUTTON))
        label = generator.priority(make_element(element_type=ElementType.LABEL))
        assert button >= label

    def test_ambiguous_questions_rank_lower(self, generator, make_element):
        element = make_element()
        assert generator.priority(element, ambiguous=True) < generator.priority(element)


def test_signature_uses_approximate_text(make_element):
    a = element_signature("o", "app", make_element(text="Submit!"))
    b = element_signature("o", "app", make_element(text="  submit "))
    c = element_signature("o", "other-app", make_element(text="Submit"))
    assert a == b
    assert a != c


class TestQuestionQueue:

    def test_one_pending_question_per_element(self, queue, generator, make_element):
        element = make_element()
        first = queue.add(generator.generate("owner-a", "app-x", element, MatchKind.UNMATCHED), element)
        again = queue.add(generator.generate("owner-a", "app-x", element, MatchKind.UNMATCHED), element)

        assert again.question_id == first.question_id
        assert len(queue.pending("owner-a")) == 1

    def test_pending_sorted_by_priority(self, queue, generator, make_element):
        small = make_element(width=10, height=10, confidence=0.4)
        large = make_element(width=600, height=300)
        queue.add(generator.generate("owner-a", "app-x", small, MatchKind.UNMATCHED), small)
        queue.add(generator.generate("owner-a", "app-x", large, MatchKind.UNMATCHED), large)
        queue.add(generator.generate("owner-b", "app-x", large, MatchKind.UNMATCHED), make_element())

        pending = queue.pending("owner-a")
        assert [q.element_id for q in pending] == [large.element_id, small.element_id]
        assert queue.pending("owner-a", "app-y") == []

    def test_answering_twice_is_rejected(self, queue, generator, make_element):
        element = make_element()
        question = queue.add(generator.generate("owner-a", "app-x", element, MatchKind.UNMATCHED), element)
        original = TrainingAnswer(question_id=question.question_id, answer_text="first")
        queue.mark_answered(original)

        with pytest.raises(OrphanedAnswerError):
            queue.mark_answered(TrainingAnswer(question_id=question.question_id, answer_text="second"))
        assert queue.answer_for(question.question_id) is original

    def test_skip_transitions(self, queue, generator, make_element):
        element = make_element()
        question = queue.add(generator.generate("owner-a", "app-x", element, MatchKind.UNMATCHED), element)

        assert queue.skip(question.question_id).status is QuestionStatus.SKIPPED
        assert queue.skip(question.question_id).status is QuestionStatus.SKIPPED
        assert queue.pending("owner-a") == []
        with pytest.raises(OrphanedAnswerError):
            queue.mark_answered(TrainingAnswer(question_id=question.question_id, answer_text="late"))

    def test_unknown_question(self, queue):
        with pytest.raises(NotFoundError):
            queue.get("missing")


class TestAnswerHistory:

    @pytest.fixture
    def learning_generator(self, settings, queue):
        return QuestionGenerator(settings, history=queue)

    def close(self, queue, generator, element, answered):
        question = queue.add(generator.generate("owner-a", "app-x", element, MatchKind.UNMATCHED), element)
        if answered:
            queue.mark_answered(TrainingAnswer(question_id=question.question_id, answer_text="explained"))
        else:
            queue.skip(question.question_id)

    def test_answer_rate_counts_closed_questions_of_one_type(self, queue, generator, make_element):
        assert queue.answer_rate(ElementType.BUTTON) is None
        pending = make_element()
        queue.add(generator.generate("owner-a", "app-x", pending, MatchKind.UNMATCHED), pending)
        assert queue.answer_rate(ElementType.BUTTON) is None

        self.close(queue, generator, make_element(), answered=True)
        self.close(queue, generator, make_element(), answered=False)
        self.close(queue, generator, make_element(element_type=ElementType.LABEL), answered=False)

        assert queue.answer_rate(ElementType.BUTTON) == pytest.approx(0.5)
        assert queue.answer_rate(ElementType.LABEL) == 0.0
        assert queue.answer_rate(ElementType.LINK) is None

    def test_type_score_without_history_is_the_base_salience(self, learning_generator, generator):
        assert learning_generator.type_score(ElementType.LABEL) == pytest.approx(0.3)
        assert generator.type_score(ElementType.BUTTON) == pytest.approx(1.0)

    def test_answered_types_gain_and_skipped_types_lose(self, learning_generator, queue, make_element):
        self.close(queue, learning_generator, make_element(element_type=ElementType.LABEL), answered=True)
        self.close(queue, learning_generator, make_element(), answered=False)

        assert learning_generator.type_score(ElementType.LABEL) == pytest.approx(0.65)
        assert learning_generator.type_score(ElementType.BUTTON) == pytest.approx(0.5)
        assert learning_generator.type_score(ElementType.LINK) == pytest.approx(0.75)

    def test_history_can_lift_a_question_above_its_base_priority(self, learning_generator, generator, queue,
                                                                 make_element):
        label = make_element(element_type=ElementType.LABEL, confidence=1.0, width=400, height=200)
        before = learning_generator.priority(label)
        self.close(queue, learning_generator, make_element(element_type=ElementType.LABEL), answered=True)

        assert learning_generator.priority(label) > before
        assert generator.priority(label) == before

    def test_priority_stays_monotonic_with_history(self, learning_generator, queue, make_element):
        self.close(queue, learning_generator, make_element(), answered=False)

        sizes = [(10, 10), (60, 20), (120, 40), (400, 200), (900, 600)]
        by_size = [learning_generator.priority(make_element(width=w, height=h)) for w, h in sizes]
        by_confidence = [learning_generator.priority(make_element(confidence=c)) for c in (0.0, 0.3, 0.6, 1.0)]
        assert by_size == sorted(by_size)
        assert by_confidence == sorted(by_confidence)
        assert 1 <= min(by_size) and max(by_size) <= 10
