# tests/test_versioned_store.py
from __future__ import annotations

import pytest
from sqlalchemy import select

from shop_api.models import Product
from shop_api.pagination import PageRequest
from shop_api.repositories import ProductRepository, UserRepository, WriteStatus, like_pattern


@pytest.fixture()
def repo(db, catalog, paginator) -> ProductRepository:
    return ProductRepository(db, catalog, paginator)


def _raw(db, product_id: int):
    """Starea din tabel, ocolind filtrul `deleted` al citirilor din catalog."""
    return db.execute(
        select(Product.name, Product.version, Product.deleted).where(Product.id == product_id)
    ).one()


def test_write_if_version_applies_and_increments(repo, db, make_product):
    p = make_product()
    assert p.version == 1

    result = repo.write_if_version(p.id, {"name": "Nou"}, expected_version=1, actor="tester")
    db.commit()

    assert result.status is WriteStatus.APPLIED and result.applied
    assert result.version == 2
    fresh = repo.read(p.id)
    assert fresh.name == "Nou" and fresh.version == 2 and fresh.updated_by == "tester"


def test_stale_write_is_idempotent(repo, db, make_product):
    p = make_product(name="Original")
    assert repo.write_if_version(p.id, {"name": "Primul"}, 1).applied
    db.commit()

    # reemiterea cu versiunea consumată nu modifică nimic, oricâte ori
    for _ in range(3):
        result = repo.write_if_version(p.id, {"name": "Al doilea"}, 1)
        db.commit()
        assert result.status is WriteStatus.STALE and result.version is None
        assert tuple(_raw(db, p.id)) == ("Primul", 2, False)


def test_two_writers_same_version_one_wins(registry, catalog, paginator, make_product):
    p = make_product()
    with registry.session_scope() as s1, registry.session_scope() as s2:
        r1, r2 = ProductRepository(s1, catalog, paginator), ProductRepository(s2, catalog, paginator)
        v1, v2 = r1.read(p.id).version, r2.read(p.id).version
        assert v1 == v2 == 1
        first = r1.write_if_version(p.id, {"name": "A"}, v1)
        s1.commit()
        second = r2.write_if_version(p.id, {"name": "B"}, v2)
    assert first.applied and not second.applied


def test_soft_delete_hides_row_and_keeps_version(repo, db, make_product):
    p = make_product()
    repo.write_if_version(p.id, {"name": "v2"}, 1)
    db.commit()

    assert repo.soft_delete(p.id) is True
    db.commit()

    assert repo.read(p.id) is None
    assert repo.exists(p.id) is False
    name, version, deleted = _raw(db, p.id)
    assert deleted is True and version == 2  # versiunea nu se schimbă la soft delete

    # al doilea soft delete nu găsește rândul; scrierile devin STALE
    assert repo.soft_delete(p.id) is False
    assert repo.write_if_version(p.id, {"name": "x"}, 2).status is WriteStatus.STALE


def test_write_on_missing_row_is_stale(repo):
    assert repo.write_if_version(999_999, {"name": "x"}, 1).status is WriteStatus.STALE


@pytest.mark.parametrize("column", ["id", "version", "deleted", "created_at"])
def test_store_managed_columns_cannot_be_written(repo, make_product, column):
    p = make_product()
    with pytest.raises(ValueError):
        repo.write_if_version(p.id, {column: 1}, 1)


def test_count_and_find_page_ignore_deleted(repo, db, make_product):
    ids = [make_product(price=f"{i}.00").id for i in range(1, 6)]
    repo.soft_delete(ids[0])
    db.commit()

    assert repo.count() == 4
    items, total = repo.find_page(PageRequest(page=0, size=2, sort_by="price", sort_dir="DESC"))
    assert total == 4
    assert [i.id for i in items] == [ids[4], ids[3]]

    items, _ = repo.find_page(PageRequest(page=1, size=2, sort_by="price", sort_dir="DESC"))
    assert [i.id for i in items] == [ids[2], ids[1]]


def test_find_page_with_unsafe_sort_falls_back_to_id(repo, make_product):
    ids = [make_product().id for _ in range(3)]
    items, _ = repo.find_page(PageRequest(sort_by="name; DROP TABLE products"))
    assert [i.id for i in items] == ids


def test_reads_refresh_identity_map(repo, db, make_product):
    p = make_product(quantity=5)
    loaded = repo.read(p.id)
    repo.adjust_quantity(p.id, -2, loaded.version)
    db.commit()
    # aceeași instanță din identity map, dar cu valorile curente
    again = repo.read(p.id)
    assert again is loaded
    assert again.quantity == 3 and again.version == 2


def test_user_queries(db, catalog, paginator, make_user):
    repo = UserRepository(db, catalog, paginator)
    a = make_user(email="ion.ionescu@example.com", first_name="Ion", last_name="Ionescu")
    make_user(first_name="Maria", last_name="Pop", status="INACTIVE")

    assert repo.find_by_email("ion.ionescu@example.com").id == a.id
    assert repo.exists_by_email("ion.ionescu@example.com")

    items, total = repo.search_by_name("ionesc")
    assert total == 1 and items[0].id == a.id

    items, total = repo.find_by_status("INACTIVE")
    assert total == 1 and items[0].first_name == "Maria"


@pytest.mark.parametrize(
    "query, expected",
    [
        ("  Ion ", "%ion%"),
        ("50%", "%50\\%%"),
        ("a_b", "%a\\_b%"),
        ("c:\\x", "%c:\\\\x%"),
    ],
)
def test_like_pattern_escapes_wildcards(query, expected):
    assert like_pattern(query) == expected


def test_search_treats_wildcards_literally(repo, make_product):
    hit = make_product(name="Reducere 50% iarna")
    make_product(name="Reducere 500 lei")
    make_product(name="cablu_usb")

    items, total = repo.search_by_name("50%")
    assert total == 1 and [i.id for i in items] == [hit.id]

    # fără escapare, "%" ar potrivi toate cele trei produse
    items, total = repo.search_by_name("%")
    assert total == 1 and items[0].id == hit.id
    items, total = repo.search_by_name("_")
    assert total == 1 and items[0].name == "cablu_usb"
