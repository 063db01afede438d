from uuid import UUID

from sqlalchemy.orm import Session

from subscription_engine.models.plan import Plan
from subscription_engine.models.price import Price


class PlanRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, plan_id: UUID) -> Plan | None:
        return self.db.query(Plan).filter(Plan.id == plan_id).first()

    def get_by_code(self, code: str) -> Plan | None:
        return self.db.query(Plan).filter(Plan.code == code).first()

    def create(self, code: str, name: str, description: str | None = None) -> Plan:
        plan = Plan(code=code, name=name, description=description)
        self.db.add(plan)
        self.db.commit()
        self.db.refresh(plan)
        return plan

    def get_prices(self, plan_id: UUID) -> list[Price]:
        """Active prices of a plan, oldest first."""
        return (
            self.db.query(Price)
            .filter(Price.plan_id == plan_id, Price.active.is_(True))
            .order_by(Price.created_at, Price.id)
            .all()
        )

    def add_price(
        self,
        plan_id: UUID,
        unit_amount: int,
        currency: str = "USD",
        billing_interval: str | None = None,
    ) -> Price:
        price = Price(
            plan_id=plan_id,
            unit_amount=unit_amount,
            currency=currency,
            billing_interval=billing_interval,
        )
        self.db.add(price)
        self.db.commit()
        self.db.refresh(price)
        return price
