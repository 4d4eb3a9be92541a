from imobconnect.models.activity import ActivityLog
from imobconnect.accounts.models import User
from imobconnect.listings.models import Development, Favorite, Property, Unit
from imobconnect.crm.models import CrmStageConfig, Lead
from imobconnect.affiliates.models import PropertyAffiliation
from imobconnect.documents.models import Document
from imobconnect.sites.models import Website

__all__ = [
	"ActivityLog",
	"CrmStageConfig",
	"Development",
	"Document",
	"Favorite",
	"Lead",
	"Property",
	"PropertyAffiliation",
	"Unit",
	"User",
	"Website",
]
