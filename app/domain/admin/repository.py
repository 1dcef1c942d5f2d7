"""Admin repository - Firestore operations for settings, external services and calendar blocks"""

from typing import Optional

from google.cloud.firestore import SERVER_TIMESTAMP, FieldFilter

from ...config import BLOCKS_COLLECTION, EXTERNAL_SERVICES_COLLECTION, SETTINGS_COLLECTION

HOMESERVE_SETTINGS_DOC = "homeserve"
RENDER_SETTINGS_DOC = "render_config"
HOMESERVE_PROVIDER = "homeserve"


class AdminRepository:
    """Repository for back-office document store operations"""

    @staticmethod
    def get_settings(db, name: str) -> Optional[dict]:
        snapshot = db.collection(SETTINGS_COLLECTION).document(name).get()
        if not snapshot.exists:
            return None
        return snapshot.to_dict() or {}

    @staticmethod
    def merge_settings(db, name: str, data: dict, touch: bool = False) -> None:
        """Merge fields into a settings document, stamping lastChange when asked"""
        payload = dict(data)
        if touch:
            payload["lastChange"] = SERVER_TIMESTAMP
        db.collection(SETTINGS_COLLECTION).document(name).set(payload, merge=True)

    @staticmethod
    def replace_settings(db, name: str, data: dict) -> None:
        db.collection(SETTINGS_COLLECTION).document(name).set(data)

    @staticmethod
    def list_external_services(db, provider: str = HOMESERVE_PROVIDER) -> list[dict]:
        snapshots = (
            db.collection(EXTERNAL_SERVICES_COLLECTION)
            .where(filter=FieldFilter("provider", "==", provider))
            .stream()
        )
        return [{"id": s.id, **(s.to_dict() or {})} for s in snapshots]

    @staticmethod
    def update_external_service(db, service_id: str, data: dict) -> None:
        db.collection(EXTERNAL_SERVICES_COLLECTION).document(service_id).update(data)

    @staticmethod
    def delete_external_services(db, ids: list[str]) -> None:
        """Delete several services in one atomic batch"""
        batch = db.batch()
        collection = db.collection(EXTERNAL_SERVICES_COLLECTION)
        for service_id in ids:
            batch.delete(collection.document(service_id))
        batch.commit()

    @staticmethod
    def create_block(db, data: dict) -> str:
        payload = {**data, "createdAt": SERVER_TIMESTAMP}
        _, ref = db.collection(BLOCKS_COLLECTION).add(payload)
        return ref.id

    @staticmethod
    def get_block(db, block_id: str) -> Optional[dict]:
        snapshot = db.collection(BLOCKS_COLLECTION).document(block_id).get()
        if not snapshot.exists:
            return None
        return snapshot.to_dict() or {}

    @staticmethod
    def delete_block(db, block_id: str) -> None:
        db.collection(BLOCKS_COLLECTION).document(block_id).delete()
