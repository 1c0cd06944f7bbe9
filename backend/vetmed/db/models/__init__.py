# backend/vetmed/db/models/__init__.py

from vetmed.db.models.user import User
from vetmed.db.models.household import Household
from vetmed.db.models.household_member import HouseholdMember
from vetmed.db.models.animal import Animal
from vetmed.db.models.medication import Medication
from vetmed.db.models.inventory_item import InventoryItem
from vetmed.db.models.regimen import Regimen
from vetmed.db.models.administration import Administration
from vetmed.db.models.cosign_request import CosignRequest
from vetmed.db.models.pending_mutation import PendingMutation
from vetmed.db.models.audit_log import AuditLog
