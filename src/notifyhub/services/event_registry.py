"""
Event Registry

Dealership business events that produce notifications, with their
default templates and recipient rules.
"""
from dataclasses import dataclass
from typing import Dict, Tuple

from ..models.notification import NotificationTemplate, Priority


@dataclass(frozen=True)
class EventDefinition:
    """How one business event is announced and to whom"""
    event_type: str
    category: str
    priority: Priority
    title_template: str
    body_template: str
    action_url: str
    entity_type: str
    roles: Tuple[str, ...]
    required_fields: Tuple[str, ...]

    @property
    def preference_key(self) -> str:
        return f"{self.category}_notifications"

    def to_template(self) -> NotificationTemplate:
        return NotificationTemplate(
            key=self.event_type,
            category=self.category,
            notification_type=self.entity_type,
            priority=self.priority,
            title_template=self.title_template,
            body_template=self.body_template,
            action_url_template=self.action_url,
        )


EVENT_REGISTRY: Dict[str, EventDefinition] = {
    event.event_type: event
    for event in (
        EventDefinition(
            event_type="vehicle.updated",
            category="inventory",
            priority=Priority.MEDIUM,
            title_template="Vehicle Updated",
            body_template="User {{username}} updated '{{registration}}' - {{field_name}} changed",
            action_url="/vehicle-master",
            entity_type="vehicle",
            roles=("admin",),
            required_fields=("username", "registration", "field_name"),
        ),
        EventDefinition(
            event_type="vehicle.added",
            category="inventory",
            priority=Priority.MEDIUM,
            title_template="New Vehicle Added",
            body_template="User {{username}} added '{{registration}}' to Vehicle Master",
            action_url="/vehicle-master",
            entity_type="vehicle",
            roles=("admin", "manager"),
            required_fields=("username", "registration"),
        ),
        EventDefinition(
            event_type="vehicle.sold",
            category="sales",
            priority=Priority.HIGH,
            title_template="Vehicle Sold",
            body_template="User {{username}} marked '{{registration}}' as sold - £{{sale_price}}",
            action_url="/vehicle-master",
            entity_type="vehicle",
            roles=("admin", "manager", "salesperson"),
            required_fields=("username", "registration"),
        ),
        EventDefinition(
            event_type="vehicle.bought",
            category="inventory",
            priority=Priority.MEDIUM,
            title_template="Vehicle Bought",
            body_template="User {{username}} added a vehicle to Bought Vehicles",
            action_url="/bought-vehicles",
            entity_type="bought_vehicle",
            roles=("admin", "manager"),
            required_fields=("username", "stock_number"),
        ),
        EventDefinition(
            event_type="lead.created",
            category="customer",
            priority=Priority.HIGH,
            title_template="New Lead Created",
            body_template="User {{username}} added a new lead: {{lead_name}}",
            action_url="/leads",
            entity_type="lead",
            roles=("admin", "manager", "salesperson"),
            required_fields=("username", "lead_name"),
        ),
        EventDefinition(
            event_type="appointment.booked",
            category="customer",
            priority=Priority.MEDIUM,
            title_template="Appointment Booked",
            body_template="User {{username}} booked an appointment on {{appointment_date}}",
            action_url="/appointments",
            entity_type="appointment",
            roles=("admin", "manager", "salesperson"),
            required_fields=("username", "appointment_date"),
        ),
        EventDefinition(
            event_type="job.booked",
            category="staff",
            priority=Priority.MEDIUM,
            title_template="Job Booked",
            body_template="User {{username}} booked a new job: {{job_type}}",
            action_url="/calendar",
            entity_type="job",
            roles=("admin", "manager"),
            required_fields=("username", "job_type"),
        ),
    )
}
