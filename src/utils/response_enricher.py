# src/utils/response_enricher.py
from typing import Dict, Any, List, Sequence, Union
from ..models import Connection, ConnectionRequest, UserExtension
from ..schemas import ConnectionResponse, PublicProfile

ConnectionRow = Union[Connection, ConnectionRequest]

class ResponseEnricher:
    @staticmethod
    def enrich_connections(rows: Sequence[ConnectionRow], profiles: Dict[str, UserExtension]) -> List[Dict[str, Any]]:
        """Adds the other party's public profile to each connection or request row"""
        enriched = []
        for row in rows:
            row_dict = ConnectionResponse.model_validate(row).model_dump()
            friend = profiles.get(row.friend_id)
            row_dict['user_details'] = PublicProfile.model_validate(friend).model_dump() if friend else None
            enriched.append(row_dict)
        return enriched

    @staticmethod
    def serialize_connection(row: ConnectionRow) -> Dict[str, Any]:
        return ConnectionResponse.model_validate(row).model_dump()
