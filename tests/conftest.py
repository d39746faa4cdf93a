from __future__ import annotations

from typing import Any, Dict, List

import pytest

from catalog.items import CatalogItem, CatalogSnapshot, build_catalog_item
from catalog.schema import CatalogSchema
from catalog.settings import CatalogSettings, get_preset


SAMPLE_WORKS: Dict[str, Dict[str, Any]] = {
    "the-call-of-cthulhu": {
        "title": "The Call of Cthulhu",
        "authors": ["Lovecraft, Howard Phillips"],
        "year-published": 1928,
        "word-count": 7500,
        "catalog-status": "published",
        "publication": "Weird Tales",
        "genres": ["horror", "cosmic-horror", "fiction"],
    },
    "the-shadow-over-innsmouth": {
        "title": "The Shadow over Innsmouth",
        "authors": ["Lovecraft, Howard Phillips"],
        "year-published": 1942,
        "word-count": 35000,
        "catalog-status": "published",
        "publication": "Weird Tales",
        "genres": ["horror", "cosmic-horror", "mystery"],
    },
    "the-dunwich-horror": {
        "title": "The Dunwich Horror",
        "authors": ["Lovecraft, Howard Phillips"],
        "year-published": 1929,
        "word-count": 15000,
        "catalog-status": "published",
        "publication": "Weird Tales",
        "genres": ["horror", "cosmic-horror"],
    },
    "the-house-on-the-borderland": {
        "title": "The House on the Borderland",
        "authors": ["Hodgson, William Hope"],
        "year-published": 1908,
        "word-count": 62000,
        "catalog-status": "published",
        "publication": "Magazine Unknown",
        "genres": ["horror", "fantasy", "science-fiction"],
    },
    "the-great-god-pan": {
        "title": "The Great God Pan",
        "authors": ["Machen, Arthur"],
        "year-published": 1894,
        "word-count": 31000,
        "catalog-status": "published",
        "publication": "Bentley's Magazine",
        "genres": ["horror", "occult", "mystery"],
    },
    "the-monk": {
        "title": "The Monk",
        "authors": ["Lewis, Matthew Gregory"],
        "year-published": 1796,
        "word-count": 95000,
        "catalog-status": "published",
        "publication": "Original Publication",
        "genres": ["gothic", "horror", "fiction"],
    },
    "vathek": {
        "title": "Vathek",
        "authors": ["Beckford, William"],
        "year-published": 1786,
        "word-count": 21000,
        "catalog-status": "published",
        "publication": "Original Publication",
        "genres": ["gothic", "horror", "fantasy"],
    },
    "an-occurrence-at-owl-creek-bridge": {
        "title": "An Occurrence at Owl Creek Bridge",
        "authors": ["Bierce, Ambrose"],
        "year-published": 1890,
        "word-count": 3000,
        "catalog-status": "published",
        "publication": "Tales of Soldiers and Civilians",
        "genres": ["horror", "suspense", "fiction"],
    },
    "the-tell-tale-heart": {
        "title": "The Tell-Tale Heart",
        "authors": ["[[Poe, Edgar Allen]]"],
        "year-published": 1843,
        "word-count": 2500,
        "catalog-status": "draft",
        "publication": "The Pioneer",
        "genres": ["horror", "psychological", "fiction"],
    },
    "the-fall-of-the-house-of-usher": {
        "title": "The Fall of the House of Usher",
        "authors": ["Poe, Edgar Allen"],
        "year-published": 1839,
        "word-count": 7500,
        "catalog-status": "published",
        "publication": "Burton's Gentleman's Magazine",
        "genres": ["horror", "gothic", "fiction"],
    },
    "ligeia": {
        "title": "Ligeia",
        "authors": ["Poe, Edgar Allen"],
        "year-published": 1838,
        "word-count": 5000,
        "catalog-status": "draft",
        "publication": "American Museum of Literature",
        "genres": ["horror", "supernatural", "fiction"],
    },
    "the-cask-of-amontillado": {
        "title": "The Cask of Amontillado",
        "authors": ["Poe, Edgar Allen"],
        "year-published": 1846,
        "word-count": 3500,
        "catalog-status": "published",
        "publication": "Godey's Lady's Book",
        "genres": ["horror", "revenge", "fiction"],
    },
    "the-murders-in-the-rue-morgue": {
        "title": "The Murders in the Rue Morgue",
        "authors": ["Poe, Edgar Allen"],
        "year-published": 1841,
        "word-count": 12000,
        "catalog-status": "published",
        "publication": "Graham's Magazine",
        "genres": ["mystery", "detective", "fiction"],
    },
    "the-raven": {
        "title": "The Raven",
        "authors": ["Poe, Edgar Allen"],
        "year-published": 1845,
        "word-count": 1000,
        "catalog-status": "draft",
        "publication": "American Review",
        "genres": ["horror", "poetry", "supernatural"],
    },
    "carmilla": {
        "title": "Carmilla",
        "authors": ["Le Fanu, Sheridan"],
        "year-published": 1872,
        "word-count": 24000,
        "catalog-status": "published",
        "publication": "The Dark Blue",
        "genres": ["horror", "vampire", "gothic"],
    },
}


@pytest.fixture
def sample_works() -> Dict[str, Dict[str, Any]]:
    return SAMPLE_WORKS


@pytest.fixture
def settings() -> CatalogSettings:
    return get_preset("pulp-fiction")


@pytest.fixture
def schema(settings: CatalogSettings) -> CatalogSchema:
    return settings.schema


@pytest.fixture
def works(schema: CatalogSchema) -> List[CatalogItem]:
    return [build_catalog_item(data, f"{slug}.md", schema) for slug, data in SAMPLE_WORKS.items()]


@pytest.fixture
def snapshot(works: List[CatalogItem]) -> CatalogSnapshot:
    return CatalogSnapshot(revision=1, items=tuple(works))
