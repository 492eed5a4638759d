from procureflow.models.approval import ApprovalAction, ApprovalRole  # noqa: F401
from procureflow.models.job_order import (  # noqa: F401
    JobOrder,
    JobOrderApproval,
    JobOrderMaterial,
    JobOrderMilestone,
    JobOrderStatus,
    JobOrderTransferItem,
    JobOrderType,
    MaterialSource,
    TransferItemStatus,
)
from procureflow.models.notification import Notification, NotificationType, RelatedEntityType  # noqa: F401
from procureflow.models.person import Person, PersonRole  # noqa: F401
from procureflow.models.purchase_order import (  # noqa: F401
    PurchaseOrder,
    PurchaseOrderApproval,
    PurchaseOrderItem,
    PurchaseOrderStatus,
)
from procureflow.models.receiving_report import (  # noqa: F401
    ReceivingReport,
    ReceivingReportItem,
    ReceivingReportStatus,
)
from procureflow.models.sequence import DocumentSequence  # noqa: F401
from procureflow.models.service_request import (  # noqa: F401
    Priority,
    ServiceCategory,
    ServiceRequest,
    ServiceRequestApproval,
    ServiceRequestStatus,
)
