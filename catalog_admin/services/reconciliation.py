"""
Reconciliation engine.

Tracks products and categories as working copies against a server
baseline, applies local edits, validates the working set and turns it
into the minimal set of remote mutations on save.

Usage:
    rec = Reconciler(backend)
    await rec.load()

    pid = rec.add_product()
    rec.edit_product_field(pid, "sku", "A-100")
    rec.edit_product_field(pid, "category", "Tools")

    for v in rec.validate():
        print(v.code, v.subject)

    result = await rec.save()
    if not result.success:
        for f in result.failures:
            print(f.entity, f.operation, f.message)

Every save that issued calls ends with a reload, so the working set
reflects what the server actually holds, whatever landed. When that reload
fails the save reports it as a failure and ``stale`` stays set until the
next successful load.
"""

import asyncio
import logging
import re
from dataclasses import dataclass
from enum import Enum
from functools import partial
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

import pydantic
from pydantic.alias_generators import to_camel

from catalog_admin.core.errors import (
    ApplicationError,
    Busy,
    DuplicateKey,
    DuplicateName,
    NotFound,
    TransportError,
    ValidationError,
)
from catalog_admin.protocols import CatalogBackend
from catalog_admin.results import SaveFailure, SaveResult, Violation
from catalog_admin.schemas import Category, CategoryLabel, Localization, Page, Product, Record, Translation
from catalog_admin.services.diff import category_patch, product_patch
from catalog_admin.services.tracking import Identity, Tracked, TrackedSet, new_pending

logger = logging.getLogger(__name__)

PRODUCT_FIELDS = ("sku", "category", "image_url", "product_status", "quantity_in_stock")
LOCALIZATION_FIELDS = ("lang", "country", "product_name", "description", "price", "currency")
LANG_RE = re.compile(r"^[a-z]{2}$")

LocalizationKey = Tuple[str, str]


class Bucket(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    NOOP = "noop"


def resolve_field(name: str, allowed: Tuple[str, ...]) -> str:
    """Map a snake_case or camelCase field name onto an editable field."""
    for field_name in allowed:
        if name in (field_name, to_camel(field_name)):
            return field_name
    raise ValidationError("INVALID_FIELD", field=name)


def assign(record: Record, name: str, value: Any) -> None:
    try:
        setattr(record, name, value)
    except pydantic.ValidationError as exc:
        raise ValidationError("INVALID_FIELD", field=name, reason=exc.errors()[0]["msg"]) from exc


def failure_message(exc: Exception) -> str:
    if isinstance(exc, ApplicationError):
        return exc.message
    if isinstance(exc, TransportError):
        if exc.status is not None:
            return f"Request failed with status {exc.status}"
        return f"Request failed: {exc.details.get('reason', 'network error')}"
    return str(exc)


# ══════════════════════════════════════════════════════════════
# UNIT OF WORK
# ══════════════════════════════════════════════════════════════


@dataclass
class Step:
    operation: str
    run: Callable[[], Awaitable[Any]]
    undo: Optional[Callable[[], Awaitable[Any]]] = None


class UnitOfWork:
    """
    The remote calls for one entity, applied in order.

    When a call fails the remaining ones are skipped and the calls already
    applied are compensated in reverse order.
    """

    def __init__(self, entity: str, steps: List[Step]):
        self.entity = entity
        self.steps = steps
        self.calls = 0

    async def execute(self) -> List[SaveFailure]:
        applied: List[Step] = []
        for step in self.steps:
            self.calls += 1
            try:
                await step.run()
            except (TransportError, ApplicationError) as exc:
                logger.warning("%s failed for %s: %s", step.operation, self.entity, exc)
                failures = [SaveFailure(self.entity, step.operation, failure_message(exc))]
                failures.extend(await self._compensate(applied))
                return failures
            applied.append(step)
        return []

    async def _compensate(self, applied: List[Step]) -> List[SaveFailure]:
        failures = []
        for step in reversed(applied):
            if step.undo is None:
                continue
            self.calls += 1
            try:
                await step.undo()
            except (TransportError, ApplicationError) as exc:
                logger.error("Could not undo %s for %s: %s", step.operation, self.entity, exc)
                failures.append(SaveFailure(self.entity, f"undo {step.operation}", failure_message(exc)))
        return failures


# ══════════════════════════════════════════════════════════════
# RECONCILER
# ══════════════════════════════════════════════════════════════


class Reconciler:
    def __init__(
        self,
        backend: CatalogBackend,
        page_size: int = 20,
        category_page_size: int = 100,
        default_lang: str = "en",
        default_country: str = "us",
        default_currency: str = "USD",
    ):
        self.backend = backend
        self.page_size = page_size
        self.category_page_size = category_page_size
        self.default_lang = default_lang
        self.default_country = default_country
        self.default_currency = default_currency

        self.products: TrackedSet[Product] = TrackedSet("product")
        self.categories: TrackedSet[Category] = TrackedSet("category")
        self.product_next_token: Optional[str] = None
        self.saving = False
        self.stale = False

    # ── fetching ──

    async def load(self) -> None:
        """Replace baseline and working copies with page one from the server."""
        page, categories = await asyncio.gather(
            self.backend.list_products(self.page_size),
            self.fetch_all_categories(),
        )
        self.products.replace(page.items)
        self.categories.replace(categories)
        self.product_next_token = page.next_token
        self.stale = False
        logger.info("Loaded %d products and %d categories", len(self.products), len(self.categories))

    async def fetch_all_categories(self) -> List[Category]:
        # validation needs every category, so walk all pages
        items: List[Category] = []
        token: Optional[str] = None
        while True:
            page = await self.backend.list_categories(self.category_page_size, token)
            items.extend(page.items)
            token = page.next_token
            if not token:
                return items

    async def restart_products(self) -> List[Tracked[Product]]:
        """Page one of the unfiltered listing, merged without losing edits."""
        page = await self.backend.list_products(self.page_size)
        self.product_next_token = page.next_token
        return self.products.adopt(page.items)

    async def load_more_products(self) -> List[Tracked[Product]]:
        if self.product_next_token is None:
            return []
        page = await self.backend.list_products(self.page_size, self.product_next_token)
        self.product_next_token = page.next_token
        return self.products.adopt(page.items)

    async def category_labels(self, lang: str, next_token: Optional[str] = None) -> Page[CategoryLabel]:
        """Read-only: category names as shown in one language."""
        return await self.backend.list_categories_by_language(
            (lang or self.default_lang).strip().lower(), self.category_page_size, next_token,
        )

    # ── products ──

    def add_product(self) -> Identity:
        loc = Localization(
            lang=self.default_lang,
            country=self.default_country,
            currency=self.default_currency,
            pending_id=new_pending().local_id,
        )
        return self.products.insert_new(Product(localizations=[loc])).identity

    def remove_new_product(self, identity: Identity) -> None:
        entry = self.products.get(identity)
        if not entry.is_new:
            raise ValidationError("NOT_PENDING", identity=str(identity))
        self.products.drop(identity)

    def mark_product_deleted(self, identity: Identity, deleted: bool = True) -> None:
        self.products.get(identity).deleted = deleted

    def edit_product_field(self, identity: Identity, field: str, value: Any) -> None:
        entry = self.products.get(identity)
        name = resolve_field(field, PRODUCT_FIELDS)
        if name == "sku":
            if not entry.is_new:
                raise ValidationError("IMMUTABLE_FIELD", field="sku", identity=str(identity))
            value = "" if value is None else str(value).strip()
        assign(entry.record, name, value)

    # ── localizations ──

    def add_localization(self, identity: Identity, lang: str = "", country: str = "", **fields: Any) -> LocalizationKey:
        product = self.products.get(identity).record
        key = ((lang or "").strip().lower(), (country or "").strip().lower())
        if any(l.key == key for l in product.localizations):
            raise DuplicateKey(product=str(identity), lang=key[0], country=key[1])
        if fields.get("currency") is None:
            fields["currency"] = self.default_currency
        try:
            loc = Localization(lang=key[0], country=key[1], pending_id=new_pending().local_id, **fields)
        except pydantic.ValidationError as exc:
            raise ValidationError("INVALID_FIELD", reason=exc.errors()[0]["msg"]) from exc
        product.localizations.append(loc)
        return key

    def edit_localization(self, identity: Identity, key: LocalizationKey, field: str, value: Any) -> None:
        product = self.products.get(identity).record
        loc = self._localization(product, key)
        name = resolve_field(field, LOCALIZATION_FIELDS)
        if name in ("lang", "country"):
            if loc.pending_id is None:
                raise ValidationError("IMMUTABLE_FIELD", field=name)
            value = (value or "").strip().lower()
            new_key = (value, loc.country) if name == "lang" else (loc.lang, value)
            if new_key != loc.key and any(l.key == new_key for l in product.localizations):
                raise DuplicateKey(product=str(identity), lang=new_key[0], country=new_key[1])
        assign(loc, name, value)

    def remove_localization(self, identity: Identity, key: LocalizationKey) -> None:
        product = self.products.get(identity).record
        loc = self._localization(product, key)
        if len(product.localizations) <= 1:
            raise ValidationError("LAST_LOCALIZATION", product=str(identity))
        product.localizations.remove(loc)

    def _localization(self, product: Product, key: LocalizationKey) -> Localization:
        key = tuple(key)
        for loc in product.localizations:
            if loc.key == key:
                return loc
        raise NotFound(kind="localization", lang=key[0], country=key[1])

    # ── categories ──

    def add_category(self, name: str) -> Identity:
        name = (name or "").strip()
        if not name:
            raise ValidationError("MISSING_FIELD", field="category")
        if any(e.record.category.lower() == name.lower() for e in self.categories.live()):
            raise DuplicateName(name=name)
        # re-adding a name marked for deletion revives that entry
        for entry in self.categories.entries():
            if entry.deleted and entry.record.category.lower() == name.lower():
                entry.deleted = False
                return entry.identity
        return self.categories.insert_new(Category(category=name)).identity

    def mark_category_deleted(self, identity: Identity, deleted: bool = True) -> None:
        self.categories.get(identity).deleted = deleted

    def add_translation(self, identity: Identity, lang: str, text: str) -> None:
        category = self.categories.get(identity).record
        lang = (lang or "").strip().lower()
        text = (text or "").strip()
        if not LANG_RE.match(lang):
            raise ValidationError("INVALID_LANG", lang=lang)
        if not text:
            raise ValidationError("MISSING_FIELD", field="text")
        if any(t.lang.lower() == lang for t in category.translations):
            raise DuplicateKey(category=category.category, lang=lang)
        category.translations.append(Translation(lang=lang, text=text))

    def edit_translation(self, identity: Identity, lang: str, text: str) -> None:
        category = self.categories.get(identity).record
        assign(self._translation(category, lang), "text", text)

    def remove_translation(self, identity: Identity, lang: str) -> None:
        category = self.categories.get(identity).record
        category.translations.remove(self._translation(category, lang))

    def _translation(self, category: Category, lang: str) -> Translation:
        lang = (lang or "").strip().lower()
        for t in category.translations:
            if t.lang.lower() == lang:
                return t
        raise NotFound(kind="translation", category=category.category, lang=lang)

    # ── change state ──

    def compute_dirty(self, entry: Tracked) -> bool:
        if entry.is_new:
            return True
        if isinstance(entry.record, Product):
            return not product_patch(self.products.baseline_of(entry), entry.record).empty
        return not category_patch(self.categories.baseline_of(entry), entry.record).empty

    def status(self, entry: Tracked) -> str:
        if entry.deleted:
            return "deleted"
        if entry.is_new:
            return "new"
        return "dirty" if self.compute_dirty(entry) else "clean"

    def classify(self, entry: Tracked) -> Bucket:
        if entry.is_new:
            return Bucket.NOOP if entry.deleted else Bucket.CREATE
        if entry.deleted:
            return Bucket.DELETE
        return Bucket.UPDATE if self.compute_dirty(entry) else Bucket.NOOP

    def has_changes(self) -> bool:
        entries = self.products.entries() + self.categories.entries()
        return any(self.status(e) != "clean" for e in entries)

    def revert(self) -> None:
        """Discard every local change."""
        self.products.revert()
        self.categories.revert()

    def reset(self) -> None:
        self.products.replace([])
        self.categories.replace([])
        self.product_next_token = None

    # ── validation ──

    def validate(self) -> List[Violation]:
        live_categories = {e.record.category for e in self.categories.live()}
        deleted_categories = {e.record.category for e in self.categories.entries() if e.deleted}
        violations: List[Violation] = []
        sku_counts: Dict[str, int] = {}

        for entry in self.products.live():
            product = entry.record
            subject = product.sku or str(entry.identity)
            if not product.sku.strip():
                violations.append(Violation("MISSING_SKU", subject, "Product has no SKU"))
            else:
                sku_counts[product.sku] = sku_counts.get(product.sku, 0) + 1

            if not (product.category or "").strip():
                violations.append(Violation("MISSING_CATEGORY", subject, f"Product {subject} has no category"))
            elif product.category not in live_categories:
                if product.category in deleted_categories:
                    violations.append(Violation(
                        "CATEGORY_DELETED", subject,
                        f"Product {subject} references deleted category {product.category}",
                    ))
                else:
                    violations.append(Violation(
                        "UNKNOWN_CATEGORY", subject,
                        f"Product {subject} references unknown category {product.category}",
                    ))

            if not product.localizations:
                violations.append(Violation("NO_LOCALIZATION", subject, f"Product {subject} has no localization"))
            for loc in product.localizations:
                if not loc.lang or not loc.country or not loc.product_name:
                    violations.append(Violation(
                        "MISSING_FIELD", subject,
                        f"Product {subject}: language, country and product name are required",
                    ))

        for sku, count in sku_counts.items():
            if count > 1:
                violations.append(Violation("DUPLICATE_SKU", sku, f"SKU {sku} is used by {count} products"))
        return violations

    # ── save ──

    async def save(self) -> SaveResult:
        if self.saving:
            raise Busy("SAVE_IN_PROGRESS")
        violations = self.validate()
        if violations:
            raise ValidationError(violations=violations)

        self.saving = True
        try:
            units = self._plan()
            if not units:
                return SaveResult(success=True, message="Nothing to save")

            logger.info("Saving %d change(s)", len(units))
            outcomes = await asyncio.gather(*(u.execute() for u in units), return_exceptions=True)
            failures: List[SaveFailure] = []
            for outcome in outcomes:
                if isinstance(outcome, BaseException):
                    raise outcome
                failures.extend(outcome)
            calls = sum(u.calls for u in units)

            try:
                await self.load()
            except (TransportError, ApplicationError) as exc:
                logger.warning("Reload after save failed: %s", exc)
                self.stale = True
                failures.append(SaveFailure("working set", "reload", failure_message(exc)))
        finally:
            self.saving = False

        if failures:
            logger.warning("Save finished with %d failure(s)", len(failures))
            return SaveResult(
                success=False,
                calls=calls,
                failures=failures,
                message=f"{len(failures)} operation(s) failed",
            )
        return SaveResult(success=True, calls=calls, message="All changes saved")

    def _plan(self) -> List[UnitOfWork]:
        units: List[UnitOfWork] = []
        for tracked_set, build in ((self.products, self._product_unit), (self.categories, self._category_unit)):
            for entry in tracked_set.entries():
                bucket = self.classify(entry)
                if bucket is Bucket.NOOP:
                    if entry.is_new:
                        # never persisted, nothing to tell the server
                        tracked_set.drop(entry.identity)
                    continue
                units.append(build(entry, bucket))
        return units

    def _product_unit(self, entry: Tracked[Product], bucket: Bucket) -> UnitOfWork:
        api = self.backend
        work = entry.record.model_copy(deep=True)
        if bucket is Bucket.CREATE:
            return UnitOfWork(f"product {work.sku}", [Step("createProduct", partial(api.create_product, work))])

        sku = entry.identity.key
        entity = f"product {sku}"
        if bucket is Bucket.DELETE:
            return UnitOfWork(entity, [Step("deleteProduct", partial(api.delete_product, sku))])

        base = self.products.baseline_of(entry)
        patch = product_patch(base, work)
        diff = patch.localizations
        steps: List[Step] = []
        if patch.fields:
            steps.append(Step("updateProduct", partial(api.update_product, work), partial(api.update_product, base)))
        # adds before removes, so the server never sees an empty list
        if diff.added:
            steps.append(Step(
                "addLocalization",
                partial(api.add_localizations, sku, diff.added),
                partial(self._remove_localizations, sku, diff.added),
            ))
        if diff.updated:
            base_by_key = {l.key: l for l in base.localizations}
            steps.append(Step(
                "updateLocalization",
                partial(api.update_localizations, sku, diff.updated),
                partial(api.update_localizations, sku, [base_by_key[l.key] for l in diff.updated]),
            ))
        for loc in diff.removed:
            steps.append(Step(
                "removeLocalization",
                partial(api.remove_localization, sku, loc.lang, loc.country),
                partial(api.add_localizations, sku, [loc]),
            ))
        return UnitOfWork(entity, steps)

    async def _remove_localizations(self, sku: str, localizations: List[Localization]) -> None:
        for loc in localizations:
            await self.backend.remove_localization(sku, loc.lang, loc.country)

    def _category_unit(self, entry: Tracked[Category], bucket: Bucket) -> UnitOfWork:
        api = self.backend
        work = entry.record.model_copy(deep=True)
        entity = f"category {work.category}"
        if bucket is Bucket.CREATE:
            return UnitOfWork(entity, [Step("createCategory", partial(api.create_category, work))])

        name = entry.identity.key
        if bucket is Bucket.DELETE:
            return UnitOfWork(entity, [Step("deleteCategory", partial(api.delete_category, name))])

        base = self.categories.baseline_of(entry)
        base_by_lang = {t.lang: t for t in base.translations}
        diff = category_patch(base, work).translations
        steps: List[Step] = []
        for t in diff.upserted:
            prior = base_by_lang.get(t.lang)
            if prior is not None:
                undo = partial(api.upsert_category_translation, name, prior.lang, prior.text)
            else:
                undo = partial(api.remove_category_translation, name, t.lang)
            steps.append(Step("upsertCategoryTranslation", partial(api.upsert_category_translation, name, t.lang, t.text), undo))
        for t in diff.removed:
            steps.append(Step(
                "removeCategoryTranslation",
                partial(api.remove_category_translation, name, t.lang),
                partial(api.upsert_category_translation, name, t.lang, t.text),
            ))
        return UnitOfWork(entity, steps)
