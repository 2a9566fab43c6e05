"""
Tests for transitioning a record to the state held in a stored audit.

A refused transition must leave the record exactly as it was.
"""
import pytest
from datetime import datetime
from auditing.exceptions import (
    IdentityMismatchError,
    IncompatibleSchemaError,
    IrreversibleModifierError,
    TypeMismatchError,
)
from auditing.services.modifiers import Base64Encoder, LeftRedactor
from auditing.services.transition import coerce_key, normalize_key
from factories import ApiModel, Article, make_audit, make_audit_record


class TestTransitionApplies:
    """Values from the chosen side become pending changes."""

    def test_new_values_by_default(self, db_session, sample_article):
        audit = make_audit(
            db_session,
            subject_id=sample_article.id,
            old_values={"title": "Draft title"},
            new_values={"title": "Final title"},
        )

        sample_article.transition_to(audit)

        assert sample_article.title == "Final title"
        assert sample_article.get_dirty() == {"title": "Final title"}

    def test_old_values(self, db_session, sample_article):
        audit = make_audit(
            db_session,
            subject_id=sample_article.id,
            old_values={"title": "Draft title", "reviewed": 0},
            new_values={"title": "Final title", "reviewed": 1},
        )

        sample_article.transition_to(audit, old=True)

        assert sample_article.title == "Draft title"
        assert sample_article.get_dirty() == {"title": "Draft title"}

    def test_nothing_is_saved(self, db_session, sample_article):
        audit = make_audit(db_session, subject_id=sample_article.id, new_values={"title": "Final title"})

        sample_article.transition_to(audit)
        db_session.rollback()
        db_session.refresh(sample_article)

        assert sample_article.title == "How To Audit Models"

    def test_transition_is_idempotent(self, db_session, sample_article):
        audit = make_audit(
            db_session,
            subject_id=sample_article.id,
            new_values={"title": "Final title", "content": "Body"},
        )

        sample_article.transition_to(audit)
        first = sample_article.get_attributes()
        sample_article.transition_to(audit)

        assert sample_article.get_attributes() == first

    def test_created_audit_old_side_is_a_no_op(self, db_session, sample_article):
        audit = make_audit(
            db_session,
            event="created",
            subject_id=sample_article.id,
            new_values={"title": "How To Audit Models"},
        )

        sample_article.transition_to(audit, old=True)

        assert sample_article.get_dirty() == {}

    def test_encoded_values_are_decoded(self, db_session, sample_article):
        sample_article.attribute_modifiers = {"content": Base64Encoder}
        audit = make_audit(
            db_session,
            subject_id=sample_article.id,
            new_values={"content": Base64Encoder().encode("Decoded body")},
        )

        sample_article.transition_to(audit)

        assert sample_article.content == "Decoded body"

    def test_encoded_integers_keep_their_type(self, db_session, sample_article):
        sample_article.attribute_modifiers = {"reviewed": Base64Encoder}
        audit = make_audit(
            db_session,
            subject_id=sample_article.id,
            new_values={"reviewed": Base64Encoder().encode(1)},
        )

        sample_article.transition_to(audit)

        assert sample_article.reviewed == 1
        assert isinstance(sample_article.reviewed, int)

    def test_stored_datetimes_become_datetimes(self, db_session, sample_article):
        audit = make_audit(
            db_session,
            subject_id=sample_article.id,
            new_values={"published_at": "2024-01-02 03:04:05"},
        )

        sample_article.transition_to(audit)

        assert sample_article.published_at == datetime(2024, 1, 2, 3, 4, 5)

    def test_unsaved_audit_record_can_be_applied(self, db_session, sample_article):
        record = make_audit_record(subject_id=sample_article.id, new_values={"reviewed": 1})

        sample_article.transition_to(record)

        assert sample_article.reviewed == 1


class TestTransitionRefusals:
    """Each refusal leaves the record unmodified."""

    def test_type_mismatch(self, db_session, sample_article):
        audit = make_audit(
            db_session,
            subject_type="shop.models.Order",
            subject_id=sample_article.id,
            new_values={"title": "Order"},
        )

        with pytest.raises(TypeMismatchError) as exc_info:
            sample_article.transition_to(audit)

        assert exc_info.value.message == (
            "Expected auditable type factories.Article, got shop.models.Order instead"
        )
        assert sample_article.get_dirty() == {}

    def test_type_alias_is_accepted(self, db_session, sample_article):
        audit = make_audit(
            db_session,
            subject_type="legacy_articles",
            subject_id=sample_article.id,
            new_values={"title": "Legacy"},
        )

        sample_article.transition_to(audit)

        assert sample_article.title == "Legacy"

    def test_identity_mismatch(self, db_session, sample_article):
        audit = make_audit(db_session, subject_id=999, new_values={"title": "Other"})

        with pytest.raises(IdentityMismatchError):
            sample_article.transition_to(audit)

        assert sample_article.get_dirty() == {}

    def test_redactor_blocks_transition(self, db_session, sample_article):
        sample_article.attribute_modifiers = {"title": LeftRedactor}
        audit = make_audit(db_session, subject_id=sample_article.id, new_values={"content": "Body"})

        with pytest.raises(IrreversibleModifierError) as exc_info:
            sample_article.transition_to(audit)

        assert exc_info.value.message == "Cannot transition states when an attribute redactor is set"
        assert exc_info.value.attributes == ["title"]
        assert sample_article.get_dirty() == {}

    def test_incompatible_keys(self, db_session, sample_article):
        audit = make_audit(
            db_session,
            subject_id=sample_article.id,
            new_values={"title": "Changed", "subject": "Removed column"},
        )

        with pytest.raises(IncompatibleSchemaError) as exc_info:
            sample_article.transition_to(audit)

        assert exc_info.value.incompatibilities == ["subject"]
        assert exc_info.value.message == (
            f"Incompatibility between [factories.Article:{sample_article.id}] "
            f"and [Audit:{audit.id}]"
        )
        assert sample_article.title == "How To Audit Models"
        assert sample_article.get_dirty() == {}

    def test_type_is_checked_before_identity(self, db_session, sample_article):
        audit = make_audit(db_session, subject_type="shop.models.Order", subject_id=999)

        with pytest.raises(TypeMismatchError):
            sample_article.transition_to(audit)


class TestKeyNormalization:
    """Integer and numeric-string keys compare equal."""

    def test_numeric_strings(self):
        assert normalize_key("1") == normalize_key(1)
        assert normalize_key(" 12 ") == 12

    def test_non_numeric_strings_unchanged(self):
        assert normalize_key("ORD-1") == "ORD-1"
        assert normalize_key(None) is None

    def test_composite_keys(self):
        assert normalize_key(("1", "a")) == (1, "a")

    def test_key_column_type_decides_coercion(self):
        assert coerce_key(Article, "7") == 7
        assert coerce_key(ApiModel, "007") == "007"
        assert coerce_key(ApiModel, 7) == "7"


class TestStringKeyModels:
    """Text keys are compared as text."""

    def _saved(self, db_session, key):
        model = ApiModel(id=key, content="payload")
        db_session.add(model)
        db_session.commit()
        db_session.refresh(model)
        return model

    def test_matching_string_key(self, db_session):
        model = self._saved(db_session, "007")
        audit = make_audit(
            db_session,
            subject_type="api_models",
            subject_id="007",
            new_values={"content": "restored payload"},
        )

        model.transition_to(audit)

        assert model.content == "restored payload"

    def test_leading_zeros_are_a_different_record(self, db_session):
        model = self._saved(db_session, "7")
        audit = make_audit(
            db_session,
            subject_type="api_models",
            subject_id="007",
            new_values={"content": "other payload"},
        )

        with pytest.raises(IdentityMismatchError):
            model.transition_to(audit)

        assert model.content == "payload"
