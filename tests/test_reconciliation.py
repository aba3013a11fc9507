"""
Tests for the reconciliation engine: tracking, edits, validation, save.
"""

from decimal import Decimal

import pytest

from catalog_admin.core.errors import (
    ApplicationError,
    Busy,
    DuplicateKey,
    DuplicateName,
    NotFound,
    TransportError,
    Unauthenticated,
    ValidationError,
)
from catalog_admin.schemas import Category, Translation
from catalog_admin.services.reconciliation import Bucket, UnitOfWork, Step, resolve_field, PRODUCT_FIELDS
from catalog_admin.services.tracking import Pending, Persisted


A1 = Persisted("A1")
B2 = Persisted("B2")


def new_valid_product(rec, sku, category="Tools", name="Hammer"):
    pid = rec.add_product()
    rec.edit_product_field(pid, "sku", sku)
    rec.edit_product_field(pid, "category", category)
    rec.edit_localization(pid, ("en", "us"), "product_name", name)
    return pid


def category_id(rec, name):
    return next(e.identity for e in rec.categories.entries() if e.record.category == name)


# ═══════════════════════════════════════════════════════════════════
# LOADING AND TRACKING
# ═══════════════════════════════════════════════════════════════════


class TestLoad:
    @pytest.mark.asyncio
    async def test_load_tracks_products_and_every_category_page(self, reconciler):
        await reconciler.load()

        assert [e.identity for e in reconciler.products.entries()] == [A1, B2]
        # category_page_size is 2, so three categories need two pages
        assert {e.record.category for e in reconciler.categories.entries()} == {"Tools", "Garden", "Empty"}
        assert all(reconciler.status(e) == "clean" for e in reconciler.products.entries())

    @pytest.mark.asyncio
    async def test_load_replaces_local_edits(self, reconciler):
        await reconciler.load()
        reconciler.edit_product_field(A1, "quantity_in_stock", 3)
        reconciler.add_product()

        await reconciler.load()

        assert len(reconciler.products) == 2
        assert reconciler.products.get(A1).record.quantity_in_stock == 10

    @pytest.mark.asyncio
    async def test_new_product_goes_on_top_with_default_localization(self, reconciler):
        await reconciler.load()
        pid = reconciler.add_product()

        first = reconciler.products.entries()[0]
        assert first.identity == pid
        assert isinstance(pid, Pending)
        assert str(pid).startswith("new:")
        loc = first.record.localizations[0]
        assert (loc.lang, loc.country, loc.currency) == ("en", "us", "USD")
        assert reconciler.status(first) == "new"


# ═══════════════════════════════════════════════════════════════════
# EDITS
# ═══════════════════════════════════════════════════════════════════


class TestProductEdits:
    @pytest.mark.asyncio
    async def test_edit_then_revert_value_is_not_an_update(self, reconciler):
        await reconciler.load()
        entry = reconciler.products.get(A1)

        reconciler.edit_product_field(A1, "quantity_in_stock", 42)
        assert reconciler.classify(entry) is Bucket.UPDATE

        reconciler.edit_product_field(A1, "quantity_in_stock", 10)
        assert reconciler.classify(entry) is Bucket.NOOP
        assert reconciler.status(entry) == "clean"

    @pytest.mark.asyncio
    async def test_camel_case_field_names_are_accepted(self, reconciler):
        await reconciler.load()
        reconciler.edit_product_field(A1, "quantityInStock", 7)
        assert reconciler.products.get(A1).record.quantity_in_stock == 7

    def test_resolve_field_rejects_unknown_names(self):
        with pytest.raises(ValidationError) as exc:
            resolve_field("localizations", PRODUCT_FIELDS)
        assert exc.value.code == "INVALID_FIELD"

    @pytest.mark.asyncio
    async def test_invalid_value_is_rejected(self, reconciler):
        await reconciler.load()
        with pytest.raises(ValidationError) as exc:
            reconciler.edit_product_field(A1, "quantity_in_stock", -1)
        assert exc.value.code == "INVALID_FIELD"
        assert reconciler.products.get(A1).record.quantity_in_stock == 10

    @pytest.mark.asyncio
    async def test_sku_of_persisted_product_is_immutable(self, reconciler):
        await reconciler.load()
        with pytest.raises(ValidationError) as exc:
            reconciler.edit_product_field(A1, "sku", "Z9")
        assert exc.value.code == "IMMUTABLE_FIELD"

    @pytest.mark.asyncio
    async def test_sku_of_new_product_is_stripped(self, reconciler):
        await reconciler.load()
        pid = reconciler.add_product()
        reconciler.edit_product_field(pid, "sku", "  N1 ")
        assert reconciler.products.get(pid).record.sku == "N1"

    @pytest.mark.asyncio
    async def test_remove_new_product_only_for_pending_rows(self, reconciler):
        await reconciler.load()
        pid = reconciler.add_product()

        reconciler.remove_new_product(pid)
        assert reconciler.products.find(pid) is None

        with pytest.raises(ValidationError) as exc:
            reconciler.remove_new_product(A1)
        assert exc.value.code == "NOT_PENDING"

    @pytest.mark.asyncio
    async def test_unknown_identity_raises_not_found(self, reconciler):
        await reconciler.load()
        with pytest.raises(NotFound):
            reconciler.mark_product_deleted(Persisted("nope"))


class TestLocalizations:
    @pytest.mark.asyncio
    async def test_last_localization_cannot_be_removed(self, reconciler):
        await reconciler.load()
        with pytest.raises(ValidationError) as exc:
            reconciler.remove_localization(A1, ("en", "us"))
        assert exc.value.code == "LAST_LOCALIZATION"
        assert len(reconciler.products.get(A1).record.localizations) == 1

    @pytest.mark.asyncio
    async def test_duplicate_localization_key_is_rejected(self, reconciler):
        await reconciler.load()
        with pytest.raises(DuplicateKey):
            reconciler.add_localization(A1, "EN", "US", product_name="Again")

    @pytest.mark.asyncio
    async def test_added_localization_uses_default_currency(self, reconciler):
        await reconciler.load()
        key = reconciler.add_localization(A1, "fr", "fr", product_name="Marteau", price=Decimal("8"))
        assert key == ("fr", "fr")
        loc = reconciler.products.get(A1).record.localizations[-1]
        assert loc.currency == "USD"
        assert loc.pending_id is not None

    @pytest.mark.asyncio
    async def test_key_of_persisted_localization_is_immutable(self, reconciler):
        await reconciler.load()
        with pytest.raises(ValidationError) as exc:
            reconciler.edit_localization(A1, ("en", "us"), "lang", "de")
        assert exc.value.code == "IMMUTABLE_FIELD"

    @pytest.mark.asyncio
    async def test_key_edit_on_pending_row_checks_duplicates(self, reconciler):
        await reconciler.load()
        reconciler.add_localization(A1, "fr", "us", product_name="Marteau")
        with pytest.raises(DuplicateKey):
            reconciler.edit_localization(A1, ("fr", "us"), "lang", "EN")
        reconciler.edit_localization(A1, ("fr", "us"), "country", "CA")
        assert reconciler.products.get(A1).record.localizations[-1].key == ("fr", "ca")


class TestCategoryEdits:
    @pytest.mark.asyncio
    async def test_duplicate_category_name_is_case_insensitive(self, reconciler):
        await reconciler.load()
        with pytest.raises(DuplicateName):
            reconciler.add_category("tools")

    @pytest.mark.asyncio
    async def test_re_adding_a_deleted_category_revives_it(self, reconciler, backend):
        await reconciler.load()
        tools = category_id(reconciler, "Tools")
        reconciler.mark_category_deleted(tools)

        assert reconciler.add_category("tools") == tools
        assert not reconciler.categories.get(tools).deleted
        assert sum(e.record.category.lower() == "tools" for e in reconciler.categories.entries()) == 1

        result = await reconciler.save()

        assert result.success and result.calls == 0
        assert backend.calls == []
        assert "Tools" in backend.categories

    @pytest.mark.asyncio
    async def test_blank_category_name_is_rejected(self, reconciler):
        await reconciler.load()
        with pytest.raises(ValidationError) as exc:
            reconciler.add_category("   ")
        assert exc.value.code == "MISSING_FIELD"

    @pytest.mark.asyncio
    async def test_translation_rules(self, reconciler):
        await reconciler.load()
        garden = category_id(reconciler, "Garden")

        with pytest.raises(ValidationError) as exc:
            reconciler.add_translation(garden, "fra", "Jardin")
        assert exc.value.code == "INVALID_LANG"
        with pytest.raises(ValidationError) as exc:
            reconciler.add_translation(garden, "de", "  ")
        assert exc.value.code == "MISSING_FIELD"
        with pytest.raises(DuplicateKey):
            reconciler.add_translation(garden, "FR", "Jardin")

        reconciler.add_translation(garden, "de", "Garten")
        assert reconciler.status(reconciler.categories.get(garden)) == "dirty"

    @pytest.mark.asyncio
    async def test_translation_lookup_ignores_case(self, reconciler, backend):
        backend.categories["Tools"] = Category(category="Tools", translations=[Translation(lang="EN", text="Tools")])
        await reconciler.load()
        tools = category_id(reconciler, "Tools")

        reconciler.edit_translation(tools, "en", "Hand tools")
        assert reconciler.categories.get(tools).record.translations[0].text == "Hand tools"

        reconciler.remove_translation(tools, " en ")
        assert reconciler.categories.get(tools).record.translations == []
        with pytest.raises(NotFound):
            reconciler.edit_translation(tools, "EN", "gone")


# ═══════════════════════════════════════════════════════════════════
# VALIDATION
# ═══════════════════════════════════════════════════════════════════


class TestValidate:
    @pytest.mark.asyncio
    async def test_clean_working_set_is_valid(self, reconciler):
        await reconciler.load()
        assert reconciler.validate() == []

    @pytest.mark.asyncio
    async def test_duplicate_sku_is_reported(self, reconciler):
        await reconciler.load()
        new_valid_product(reconciler, "DUP")
        new_valid_product(reconciler, "DUP")

        violations = reconciler.validate()

        assert [(v.code, v.subject) for v in violations] == [("DUPLICATE_SKU", "DUP")]

    @pytest.mark.asyncio
    async def test_deleted_duplicate_does_not_count(self, reconciler):
        await reconciler.load()
        new_valid_product(reconciler, "DUP")
        second = new_valid_product(reconciler, "DUP")
        reconciler.mark_product_deleted(second)
        assert reconciler.validate() == []

    @pytest.mark.asyncio
    async def test_missing_category_blocks_save(self, reconciler, backend):
        await reconciler.load()
        reconciler.edit_product_field(A1, "category", "")

        assert [v.code for v in reconciler.validate()] == ["MISSING_CATEGORY"]
        with pytest.raises(ValidationError) as exc:
            await reconciler.save()
        assert exc.value.violations[0].subject == "A1"
        assert backend.calls == []

    @pytest.mark.asyncio
    async def test_deleting_referenced_category_blocks_save(self, reconciler, backend):
        await reconciler.load()
        reconciler.mark_category_deleted(category_id(reconciler, "Garden"))

        violations = reconciler.validate()
        assert [(v.code, v.subject) for v in violations] == [("CATEGORY_DELETED", "B2")]
        with pytest.raises(ValidationError):
            await reconciler.save()
        assert backend.calls == []
        assert not reconciler.saving

    @pytest.mark.asyncio
    async def test_category_referenced_only_by_deleted_products_may_go(self, reconciler):
        await reconciler.load()
        reconciler.mark_category_deleted(category_id(reconciler, "Garden"))
        reconciler.mark_product_deleted(B2)
        assert reconciler.validate() == []

    @pytest.mark.asyncio
    async def test_unknown_category_and_missing_fields(self, reconciler):
        await reconciler.load()
        pid = reconciler.add_product()
        reconciler.edit_product_field(pid, "category", "Nowhere")

        codes = sorted(v.code for v in reconciler.validate())
        assert codes == ["MISSING_FIELD", "MISSING_SKU", "UNKNOWN_CATEGORY"]


# ═══════════════════════════════════════════════════════════════════
# SAVE
# ═══════════════════════════════════════════════════════════════════


class TestSave:
    @pytest.mark.asyncio
    async def test_nothing_pending_makes_no_calls(self, reconciler, backend):
        await reconciler.load()
        queries_before = list(backend.queries)

        result = await reconciler.save()

        assert result.success
        assert result.calls == 0
        assert backend.calls == []
        assert backend.queries == queries_before

    @pytest.mark.asyncio
    async def test_new_then_deleted_makes_no_calls(self, reconciler, backend):
        await reconciler.load()
        pid = new_valid_product(reconciler, "GONE")
        reconciler.mark_product_deleted(pid)
        reconciler.mark_category_deleted(reconciler.add_category("Temp"))

        result = await reconciler.save()

        assert result.success and result.calls == 0
        assert backend.calls == []
        assert reconciler.products.find(pid) is None

    @pytest.mark.asyncio
    async def test_create_update_delete_then_reload(self, reconciler, backend):
        await reconciler.load()
        new_valid_product(reconciler, "N1")
        reconciler.edit_product_field(A1, "quantity_in_stock", 5)
        reconciler.mark_product_deleted(B2)
        reconciler.add_category("Kitchen")

        result = await reconciler.save()

        assert result.success
        assert result.calls == 4
        assert sorted(c[0] for c in backend.calls) == [
            "create_category", "create_product", "delete_product", "update_product",
        ]
        assert {str(e.identity) for e in reconciler.products.entries()} == {"A1", "N1"}
        assert reconciler.products.get(A1).record.quantity_in_stock == 5
        assert not reconciler.has_changes()

    @pytest.mark.asyncio
    async def test_localization_changes_add_before_update_before_remove(self, reconciler, backend):
        await reconciler.load()
        reconciler.add_localization(A1, "fr", "fr", product_name="Marteau")
        await reconciler.save()
        backend.calls.clear()

        reconciler.add_localization(A1, "de", "de", product_name="Hammer")
        reconciler.edit_localization(A1, ("en", "us"), "price", "12.50")
        reconciler.remove_localization(A1, ("fr", "fr"))
        await reconciler.save()

        assert backend.calls == [
            ("add_localizations", "A1", [("de", "de")]),
            ("update_localizations", "A1", [("en", "us")]),
            ("remove_localization", "A1", ("fr", "fr")),
        ]
        keys = [l.key for l in reconciler.products.get(A1).record.localizations]
        assert keys == [("en", "us"), ("de", "de")]

    @pytest.mark.asyncio
    async def test_translation_changes(self, reconciler, backend):
        await reconciler.load()
        garden = category_id(reconciler, "Garden")
        reconciler.edit_translation(garden, "fr", "Le jardin")
        reconciler.add_translation(garden, "de", "Garten")
        await reconciler.save()

        assert ("upsert_category_translation", "Garden", "fr", "Le jardin") in backend.calls
        assert ("upsert_category_translation", "Garden", "de", "Garten") in backend.calls

        backend.calls.clear()
        reconciler.remove_translation(category_id(reconciler, "Garden"), "de")
        await reconciler.save()
        assert backend.calls == [("remove_category_translation", "Garden", "de")]

    @pytest.mark.asyncio
    async def test_one_failure_does_not_stop_other_entities(self, reconciler, backend):
        await reconciler.load()
        reconciler.edit_product_field(A1, "quantity_in_stock", 77)
        reconciler.mark_category_deleted(category_id(reconciler, "Empty"))
        backend.fail("delete_category", ApplicationError("Category is still in use"))

        result = await reconciler.save()

        assert not result.success
        assert [(f.entity, f.operation, f.message) for f in result.failures] == [
            ("category Empty", "deleteCategory", "Category is still in use"),
        ]
        # reloaded from the server: the update landed, the category is still there
        assert reconciler.products.get(A1).record.quantity_in_stock == 77
        assert {e.record.category for e in reconciler.categories.entries()} == {"Tools", "Garden", "Empty"}
        assert not reconciler.has_changes()

    @pytest.mark.asyncio
    async def test_failed_reload_keeps_earlier_failures(self, reconciler, backend):
        await reconciler.load()
        reconciler.edit_product_field(A1, "quantity_in_stock", 77)
        reconciler.mark_category_deleted(category_id(reconciler, "Empty"))
        backend.fail("delete_category", ApplicationError("Category is still in use"))
        backend.fail("list_products", ApplicationError("list failed"))

        result = await reconciler.save()

        assert not result.success
        assert result.calls == 2
        assert [(f.entity, f.operation, f.message) for f in result.failures] == [
            ("category Empty", "deleteCategory", "Category is still in use"),
            ("working set", "reload", "list failed"),
        ]
        assert reconciler.stale
        assert not reconciler.saving

        del backend.failures["list_products"]
        await reconciler.load()
        assert not reconciler.stale

    @pytest.mark.asyncio
    async def test_failed_step_compensates_earlier_steps(self, reconciler, backend):
        await reconciler.load()
        reconciler.edit_product_field(A1, "quantity_in_stock", 1)
        reconciler.add_localization(A1, "fr", "fr", product_name="Marteau")
        backend.fail("add_localizations", TransportError(status=500))

        result = await reconciler.save()

        assert [c[0] for c in backend.calls] == ["update_product", "add_localizations", "update_product"]
        assert result.calls == 3
        assert result.failures[0].message == "Request failed with status 500"
        assert backend.products["A1"].quantity_in_stock == 10
        assert reconciler.products.get(A1).record.quantity_in_stock == 10

    @pytest.mark.asyncio
    async def test_unauthenticated_propagates_and_clears_busy_flag(self, reconciler, backend):
        await reconciler.load()
        reconciler.mark_product_deleted(A1)
        backend.fail("delete_product", Unauthenticated("UNAUTHORIZED_AFTER_REFRESH"))

        with pytest.raises(Unauthenticated):
            await reconciler.save()
        assert not reconciler.saving

    @pytest.mark.asyncio
    async def test_second_save_while_saving_is_busy(self, reconciler):
        await reconciler.load()
        reconciler.saving = True
        with pytest.raises(Busy) as exc:
            await reconciler.save()
        assert exc.value.code == "SAVE_IN_PROGRESS"

    @pytest.mark.asyncio
    async def test_revert_discards_everything(self, reconciler):
        await reconciler.load()
        reconciler.edit_product_field(A1, "quantity_in_stock", 0)
        reconciler.mark_product_deleted(B2)
        reconciler.add_product()

        reconciler.revert()

        assert not reconciler.has_changes()
        assert len(reconciler.products) == 2


class TestUnitOfWork:
    @pytest.mark.asyncio
    async def test_failed_undo_is_reported(self):
        log = []

        async def ok():
            log.append("first")

        async def boom():
            raise ApplicationError("second failed")

        async def undo_boom():
            raise TransportError(status=None, reason="connection reset")

        unit = UnitOfWork("product X", [Step("first", ok, undo_boom), Step("second", boom)])
        failures = await unit.execute()

        assert [f.operation for f in failures] == ["second", "undo first"]
        assert failures[1].message == "Request failed: connection reset"
        assert unit.calls == 3
