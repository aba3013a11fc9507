"""
Structural diffs between a working record and its baseline.

A patch lists only what changed, so an edit that is reverted to its
original value produces an empty patch.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Tuple

from catalog_admin.schemas import Category, Localization, Product, Translation


@dataclass
class LocalizationDiff:
    added: List[Localization] = field(default_factory=list)
    updated: List[Localization] = field(default_factory=list)
    # baseline versions of the removed rows
    removed: List[Localization] = field(default_factory=list)

    def __bool__(self) -> bool:
        return bool(self.added or self.updated or self.removed)


@dataclass
class ProductPatch:
    fields: Dict[str, Any] = field(default_factory=dict)
    localizations: LocalizationDiff = field(default_factory=LocalizationDiff)

    @property
    def empty(self) -> bool:
        return not self.fields and not self.localizations


@dataclass
class TranslationDiff:
    upserted: List[Translation] = field(default_factory=list)
    removed: List[Translation] = field(default_factory=list)

    def __bool__(self) -> bool:
        return bool(self.upserted or self.removed)


@dataclass
class CategoryPatch:
    translations: TranslationDiff = field(default_factory=TranslationDiff)

    @property
    def empty(self) -> bool:
        return not self.translations


def localization_diff(base: List[Localization], work: List[Localization]) -> LocalizationDiff:
    base_by_key: Dict[Tuple[str, str], Localization] = {l.key: l for l in base}
    work_keys = {l.key for l in work}
    diff = LocalizationDiff(removed=[l for l in base if l.key not in work_keys])
    for loc in work:
        prior = base_by_key.get(loc.key)
        if prior is None:
            diff.added.append(loc)
        elif loc.model_dump() != prior.model_dump():
            diff.updated.append(loc)
    return diff


def product_patch(base: Product, work: Product) -> ProductPatch:
    base_fields = base.scalars()
    changed = {k: v for k, v in work.scalars().items() if base_fields.get(k) != v}
    return ProductPatch(fields=changed, localizations=localization_diff(base.localizations, work.localizations))


def translation_diff(base: List[Translation], work: List[Translation]) -> TranslationDiff:
    base_by_lang = {t.lang: t for t in base}
    work_langs = {t.lang for t in work}
    diff = TranslationDiff(removed=[t for t in base if t.lang not in work_langs])
    for t in work:
        prior = base_by_lang.get(t.lang)
        if prior is None or prior.text != t.text:
            diff.upserted.append(t)
    return diff


def category_patch(base: Category, work: Category) -> CategoryPatch:
    return CategoryPatch(translations=translation_diff(base.translations, work.translations))
