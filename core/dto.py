"""
Data Transfer Objects (DTOs).
Used for passing data between layers without exposing domain models.
"""
from dataclasses import dataclass, field
from typing import Optional, List
from decimal import Decimal
from datetime import date


@dataclass
class ResidenceDTO:
    """Data Transfer Object for Residence"""
    id: Optional[int] = None
    name: str = ""
    address: str = ""
    city: str = ""
    postal_code: str = ""
    country: str = "France"
    allow_landlord_join: bool = False
    requires_syndic_approval: bool = False


@dataclass
class BulkLotsDTO:
    """Input for bulk lot creation"""
    residence_id: int = None
    building_id: Optional[int] = None
    prefix: str = ""
    start: int = 1
    end: int = 1
    lot_type: str = "APARTMENT"
    tantiemes: int = 0
    floor: Optional[int] = None


@dataclass
class PaymentDTO:
    """Data Transfer Object for a payment request"""
    amount: Decimal = Decimal('0')
    payment_method: str = ""
    reference: str = ""


@dataclass
class CoproCallDTO:
    """Input for fund-call creation"""
    residence_id: int = None
    label: str = ""
    call_type: str = "QUARTERLY"
    quarter: Optional[int] = None
    due_date: date = None
    total_amount: Decimal = Decimal('0')
    distribution_key_id: Optional[int] = None
    budget_id: Optional[int] = None


@dataclass
class ConversationDTO:
    """Input for starting a conversation"""
    participant_ids: List[int] = field(default_factory=list)
    conversation_type: str = "DIRECT"
    name: str = ""
    residence_id: Optional[int] = None
    first_message: str = ""
