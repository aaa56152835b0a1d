from __future__ import annotations

from sqlalchemy import select

from app.db.pg.base import Base
from app.db.pg.models import Contact, ContactRelationship, PotentialRelationship
from app.db.pg.session import SessionLocal, engine
from app.services.graph.records import ContactRecord, EdgeRecord, NetworkSnapshot
from app.services.graph.store import GraphStore
from app.services.inference.discovery import (
    batch_discover,
    confirm_potential_relationship,
    discover_for_contact,
    discover_from_snapshot,
)
from app.services.inference.evidence import (
    clean_company_name,
    collect_evidence,
    companies_related,
    evidence_confidence,
    infer_relationship_type,
    role_similarity,
)


def reset_db() -> None:
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)


def _contact(contact_id: str, **overrides) -> ContactRecord:
    return ContactRecord(contact_id=contact_id, account_id="acct-1", **overrides)


def test_same_company_is_case_insensitive_and_infers_colleague() -> None:
    first = _contact("a", company="Acme Corp")
    second = _contact("b", company="ACME CORP")

    evidence = collect_evidence(first, second, 0)

    assert [item.type for item in evidence] == ["same_company"]
    assert evidence[0].score == 0.8
    assert infer_relationship_type(evidence, first, second) == "colleague"


def test_shared_state_alone_stays_below_discovery_threshold() -> None:
    first = _contact("a", city="Austin", state="TX")
    second = _contact("b", city="Dallas", state="tx")

    evidence = collect_evidence(first, second, 0)

    assert [item.type for item in evidence] == ["same_state"]
    assert evidence_confidence(evidence) == 0.1
    assert discover_for_contact(first, [second], {}, min_confidence=0.3) == []


def test_company_suffixes_are_ignored_when_relating_companies() -> None:
    assert clean_company_name("Globex Inc.") == "globex"
    assert companies_related("Globex Inc.", "Globex LLC")
    assert not companies_related("Initech", "Hooli")


def test_related_companies_with_buyer_and_seller_infer_client() -> None:
    buyer = _contact("a", company="Globex", position="Procurement Lead")
    seller = _contact("b", company="Globex Holdings", position="Account Executive")

    evidence = collect_evidence(buyer, seller, 0)

    assert evidence[0].type == "related_companies"
    assert infer_relationship_type(evidence, buyer, seller) == "client"


def test_generic_email_domains_are_not_evidence() -> None:
    first = _contact("a", email="one@gmail.com")
    second = _contact("b", email="two@gmail.com")
    corporate_first = _contact("c", email="one@initech.com")
    corporate_second = _contact("d", email="two@Initech.com")

    assert collect_evidence(first, second, 0) == []
    assert [item.type for item in collect_evidence(corporate_first, corporate_second, 0)] == ["same_email_domain"]


def test_role_similarity_counts_shared_keywords() -> None:
    assert role_similarity("Senior Engineer", "senior engineer") == 1.0
    assert role_similarity("Senior Product Manager", "Product Manager") == 2 / 3
    assert role_similarity("Designer", "Accountant") == 0.0


def test_mutual_connections_are_capped() -> None:
    first = _contact("a")
    second = _contact("b")

    evidence = collect_evidence(first, second, 5)

    assert evidence[0].type == "mutual_connections"
    assert evidence[0].score == 0.6
    assert infer_relationship_type(evidence, first, second) == "acquaintance"


def test_discovery_skips_connected_and_inactive_contacts() -> None:
    me = _contact("me", company="Acme")
    connected = _contact("friend", company="Acme")
    inactive = _contact("gone", company="Acme", status="ARCHIVED")
    other_account = ContactRecord(contact_id="far", account_id="acct-2", company="Acme")
    candidate = _contact("new", company="Acme")
    snapshot = NetworkSnapshot.build(
        "acct-1",
        [me, connected, inactive, candidate],
        [EdgeRecord(relationship_id="e-1", contact_id="friend", related_contact_id="me")],
    )

    found = discover_from_snapshot(snapshot, "me")
    pool = discover_for_contact(me, [other_account, inactive, candidate], {})

    assert [item.related_contact_id for item in found] == ["new"]
    assert found[0].inferred_type == "colleague"
    assert found[0].confidence == 0.8
    assert [item.related_contact_id for item in pool] == ["new"]


def test_discovery_orders_by_confidence() -> None:
    me = _contact("me", company="Acme", email="me@acme.io", city="Austin", state="TX")
    weak = _contact("weak", city="Austin", state="TX", company="Acme Labs")
    strong = _contact("strong", company="acme", email="x@acme.io")

    found = discover_for_contact(me, [weak, strong], {})

    assert [item.related_contact_id for item in found] == ["strong", "weak"]
    assert found[0].confidence == 0.75
    assert found[0].evidence_payload()[0]["type"] == "same_company"


def test_batch_discovery_saves_top_five_pending_and_skips_unknown_ids() -> None:
    reset_db()
    db = SessionLocal()
    try:
        db.add(Contact(contact_id="me", account_id="acct-1", first_name="Me", company="Acme"))
        db.add_all(
            [
                Contact(contact_id=f"peer-{index}", account_id="acct-1", first_name=f"Peer {index}", company="ACME")
                for index in range(7)
            ]
        )
        db.commit()
    finally:
        db.close()

    result = batch_discover("acct-1", ["me", "ghost"], session_factory=SessionLocal)

    assert result.processed == 1
    assert result.skipped == 1
    assert result.failures[0]["id"] == "ghost"
    db = SessionLocal()
    try:
        rows = db.scalars(select(PotentialRelationship)).all()
        assert len(rows) == 5
        assert {row.contact_id for row in rows} == {"me"}
        assert {row.status for row in rows} == {"pending"}
        assert db.scalars(select(ContactRelationship)).all() == []
    finally:
        db.close()


def test_confirming_reuses_an_existing_edge_in_either_direction() -> None:
    reset_db()
    db = SessionLocal()
    try:
        db.add_all(
            [
                Contact(contact_id="x", account_id="acct-1", first_name="Xan", company="Acme"),
                Contact(contact_id="y", account_id="acct-1", first_name="Yui", company="Acme"),
            ]
        )
        db.commit()
        potential = GraphStore(db).upsert_potential_relationship(
            "acct-1",
            contact_id="x",
            related_contact_id="y",
            inferred_type="colleague",
            confidence=0.8,
            evidence=[{"type": "same_company", "score": 0.8}],
        )
        db.add(
            ContactRelationship(
                relationship_id="manual-yx",
                account_id="acct-1",
                contact_id="y",
                related_contact_id="x",
                relationship_type="friend",
                strength=0.6,
                source="manual",
            )
        )
        db.commit()

        edge = confirm_potential_relationship(db, account_id="acct-1", potential_id=potential.potential_id)

        edges = db.scalars(select(ContactRelationship)).all()
        assert [row.relationship_id for row in edges] == ["manual-yx"]
        assert edge.relationship_id == "manual-yx"
        assert edge.relationship_type == "friend"
        assert edge.is_verified is True
        assert db.get(PotentialRelationship, potential.potential_id).status == "confirmed"
    finally:
        db.close()
