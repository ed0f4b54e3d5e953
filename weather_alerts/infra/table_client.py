# weather_alerts/infra/table_client.py
import hashlib
import json
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from azure.core.exceptions import AzureError, ResourceNotFoundError
from azure.data.tables import TableClient, TableServiceClient, UpdateMode

from weather_alerts.exceptions import StoreError
from weather_alerts.log_setup import get_logger, mask_endpoint
from weather_alerts.models.subscription import Subscription

PARTITION_KEY = "subscription"

logger = get_logger("store")


def row_key_for(endpoint: str) -> str:
    """
    Los endpoints son URLs y RowKey no admite '/', '#', '?'...
    Usamos el sha256 del endpoint como clave.
    """
    return hashlib.sha256(endpoint.encode("utf-8")).hexdigest()


def to_entity(sub: Subscription) -> Dict[str, Any]:
    entity = {
        "PartitionKey": PARTITION_KEY,
        "RowKey": row_key_for(sub.endpoint),
        "endpoint": sub.endpoint,
        "keys": json.dumps(sub.keys),   # Table Storage no guarda dicts anidados
        "location": sub.location,
        "createdAt": sub.created_at,
        "nextNotificationTime": sub.next_notification_time,
    }
    if sub.last_notified is not None:
        entity["lastNotified"] = sub.last_notified
    return entity


def from_entity(entity: Dict[str, Any]) -> Subscription:
    keys = entity.get("keys") or "{}"
    return Subscription(
        endpoint=entity["endpoint"],
        keys=json.loads(keys) if isinstance(keys, str) else keys,
        location=entity["location"],
        created_at=entity["createdAt"],
        last_notified=entity.get("lastNotified"),
        next_notification_time=entity["nextNotificationTime"],
    )


class SubscriptionStore:
    """
    Suscripciones push en Azure Table Storage.
    Todas en la misma partición; RowKey = hash del endpoint, así que
    un endpoint nunca aparece dos veces.

    Ciclo de vida explícito: connect() al arrancar (si falla, el proceso
    no debe servir tráfico) y close() al apagar.
    """

    def __init__(
        self,
        conn_str: Optional[str] = None,
        table_name: str = "subscriptions",
        table_client: Optional[TableClient] = None,
    ):
        self._conn_str = conn_str
        self._table_name = table_name
        self._service: Optional[TableServiceClient] = None
        self._table = table_client

    def connect(self) -> None:
        if self._table is not None:
            return
        if not self._conn_str:
            raise StoreError("AZURE_STORAGE_CONNECTION_STRING is not configured")
        try:
            self._service = TableServiceClient.from_connection_string(conn_str=self._conn_str)
            self._table = self._service.create_table_if_not_exists(table_name=self._table_name)
        except (AzureError, ValueError) as e:
            raise StoreError(f"Could not connect to table '{self._table_name}': {e}") from e
        logger.info("[store] conectado a la tabla %s", self._table_name)

    def close(self) -> None:
        if self._table is not None:
            self._table.close()
            self._table = None
        if self._service is not None:
            self._service.close()
            self._service = None

    @property
    def table(self) -> TableClient:
        if self._table is None:
            raise StoreError("Subscription store is not connected")
        return self._table

    # ----- escrituras -----

    def upsert(self, sub: Subscription) -> bool:
        """Inserta o reemplaza por endpoint (idempotente)."""
        try:
            self.table.upsert_entity(entity=to_entity(sub), mode=UpdateMode.REPLACE)
        except AzureError as e:
            raise StoreError(f"Upsert failed for {mask_endpoint(sub.endpoint)}: {e}") from e
        return True

    def delete(self, endpoint: str) -> bool:
        """
        Borra la suscripción. Devuelve False si no existía
        (el SDK no avisa al borrar algo inexistente, así que miramos antes).
        """
        row_key = row_key_for(endpoint)
        try:
            self.table.get_entity(partition_key=PARTITION_KEY, row_key=row_key)
        except ResourceNotFoundError:
            return False
        except AzureError as e:
            raise StoreError(f"Lookup before delete failed: {e}") from e

        try:
            self.table.delete_entity(partition_key=PARTITION_KEY, row_key=row_key)
        except ResourceNotFoundError:
            return False
        except AzureError as e:
            raise StoreError(f"Delete failed for {mask_endpoint(endpoint)}: {e}") from e
        return True

    def update_many(
        self,
        location: str,
        last_notified: datetime,
        next_notification_time: datetime,
        endpoints: Optional[Iterable[str]] = None,
    ) -> int:
        """
        Actualiza lastNotified/nextNotificationTime de todas las suscripciones
        de la ubicación (o sólo de los endpoints indicados). MERGE, así que
        el resto de propiedades no se tocan.
        """
        only = set(endpoints) if endpoints is not None else None
        updated = 0
        for sub in self.find_by_location(location):
            if only is not None and sub.endpoint not in only:
                continue
            try:
                self.table.update_entity(
                    entity={
                        "PartitionKey": PARTITION_KEY,
                        "RowKey": row_key_for(sub.endpoint),
                        "lastNotified": last_notified,
                        "nextNotificationTime": next_notification_time,
                    },
                    mode=UpdateMode.MERGE,
                )
            except ResourceNotFoundError:
                # borrada entre la consulta y el update (p.ej. endpoint 410)
                continue
            except AzureError as e:
                raise StoreError(f"Timestamp update failed for {location}: {e}") from e
            updated += 1
        return updated

    # ----- lecturas -----

    def find_by_endpoint(self, endpoint: str) -> Optional[Subscription]:
        try:
            entity = self.table.get_entity(
                partition_key=PARTITION_KEY, row_key=row_key_for(endpoint)
            )
        except ResourceNotFoundError:
            return None
        except AzureError as e:
            raise StoreError(f"Lookup failed: {e}") from e
        return from_entity(entity)

    def find_by_location(self, location: str) -> List[Subscription]:
        return self._query(
            "PartitionKey eq @pk and location eq @location",
            {"pk": PARTITION_KEY, "location": location},
        )

    def find_all(self) -> List[Subscription]:
        return self._query("PartitionKey eq @pk", {"pk": PARTITION_KEY})

    def _query(self, query_filter: str, parameters: Dict[str, Any]) -> List[Subscription]:
        try:
            entities = self.table.query_entities(
                query_filter=query_filter, parameters=parameters
            )
            return [from_entity(e) for e in entities]
        except AzureError as e:
            raise StoreError(f"Query failed ({query_filter}): {e}") from e
