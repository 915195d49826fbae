import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

import boto3
from boto3.dynamodb.conditions import Attr, Key
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from spendwise.core.config import settings
from spendwise.core.errors import StoreFailure
from spendwise.models.category import DEFAULT_CATEGORIES, DEFAULT_OWNER, CategoryInDB

logger = logging.getLogger(__name__)

# table -> (partition key, sort key)
TABLE_KEYS = {
    "expenses": ("user_id", "expense_id"),
    "transactions": ("user_id", "transaction_id"),
    "budgets": ("user_id", "budget_id"),
    "categories": ("owner_id", "category_id"),
}


def _build_resource():
    return boto3.resource(
        "dynamodb",
        region_name=settings.DYNAMO_REGION,
        endpoint_url=settings.DYNAMO_ENDPOINT_URL,
        config=Config(
            connect_timeout=settings.DYNAMO_CONNECT_TIMEOUT,
            read_timeout=settings.DYNAMO_READ_TIMEOUT,
            retries={"max_attempts": settings.DYNAMO_MAX_ATTEMPTS, "mode": "standard"},
        ),
    )


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _date_range(start: Optional[datetime], end: Optional[datetime], field: str = "date"):
    start_iso, end_iso = _iso(start), _iso(end)
    if start_iso and end_iso:
        return Attr(field).between(start_iso, end_iso)
    if start_iso:
        return Attr(field).gte(start_iso)
    if end_iso:
        return Attr(field).lte(end_iso)
    return None


def _all_of(*conditions):
    combined = None
    for condition in conditions:
        if condition is None:
            continue
        combined = condition if combined is None else combined & condition
    return combined


class RecordStore:
    """
    Document store over four DynamoDB tables. Every item is owned by a user
    (the partition key); default categories live in the ``DEFAULT`` partition.

    Errors from boto are logged and re-raised as ``StoreFailure``.
    """

    def __init__(self, resource=None):
        self.resource = resource if resource is not None else _build_resource()
        self.table_names = {
            "expenses": settings.DYNAMO_EXPENSES_TABLE,
            "transactions": settings.DYNAMO_TRANSACTIONS_TABLE,
            "budgets": settings.DYNAMO_BUDGETS_TABLE,
            "categories": settings.DYNAMO_CATEGORIES_TABLE,
        }
        self.tables = {name: self.resource.Table(table_name) for name, table_name in self.table_names.items()}

    def create_tables(self) -> List[str]:
        """Create any missing table. Returns the names of the tables created."""
        created = []
        for name, (partition_key, sort_key) in TABLE_KEYS.items():
            try:
                table = self.resource.create_table(
                    TableName=self.table_names[name],
                    KeySchema=[
                        {"AttributeName": partition_key, "KeyType": "HASH"},
                        {"AttributeName": sort_key, "KeyType": "RANGE"},
                    ],
                    AttributeDefinitions=[
                        {"AttributeName": partition_key, "AttributeType": "S"},
                        {"AttributeName": sort_key, "AttributeType": "S"},
                    ],
                    BillingMode="PAY_PER_REQUEST",
                )
                table.wait_until_exists()
                created.append(self.table_names[name])
                logger.info(f"Created table {self.table_names[name]}")
            except ClientError as e:
                if e.response["Error"]["Code"] != "ResourceInUseException":
                    raise self._failure("create_tables", e)
        return created

    def seed_default_categories(self) -> int:
        """Insert the default categories if the DEFAULT partition is empty."""
        if self._query("categories", DEFAULT_OWNER):
            return 0
        for category in DEFAULT_CATEGORIES:
            item = CategoryInDB(owner_id=DEFAULT_OWNER, is_default=True, **category)
            self._put("categories", item.model_dump(mode="json"))
        logger.info(f"Seeded {len(DEFAULT_CATEGORIES)} default categories")
        return len(DEFAULT_CATEGORIES)

    def table_status(self) -> Dict[str, Dict[str, Any]]:
        status = {}
        for name, table in self.tables.items():
            try:
                status[name] = {"name": table.name, "status": table.table_status}
            except (ClientError, BotoCoreError) as e:
                status[name] = {"name": self.table_names[name], "status": "error", "error": str(e)}
        return status

    def put_expense(self, item: dict) -> dict:
        return self._put("expenses", item)

    def get_expense(self, user_id: str, expense_id: str) -> Optional[dict]:
        return self._get("expenses", {"user_id": user_id, "expense_id": expense_id})

    def update_expense(self, user_id: str, expense_id: str, updates: dict) -> Optional[dict]:
        return self._update("expenses", {"user_id": user_id, "expense_id": expense_id}, updates)

    def delete_expense(self, user_id: str, expense_id: str) -> bool:
        return self._delete("expenses", {"user_id": user_id, "expense_id": expense_id})

    def list_expenses(
        self,
        user_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        category_id: Optional[str] = None,
    ) -> List[dict]:
        """Expenses of a user, optionally restricted to a date range and category."""
        condition = _all_of(
            _date_range(start, end),
            Attr("category_id").eq(category_id) if category_id else None,
        )
        return self._query("expenses", user_id, condition)

    def put_transaction(self, item: dict) -> dict:
        return self._put("transactions", item)

    def get_transaction(self, user_id: str, transaction_id: str) -> Optional[dict]:
        return self._get("transactions", {"user_id": user_id, "transaction_id": transaction_id})

    def update_transaction(self, user_id: str, transaction_id: str, updates: dict) -> Optional[dict]:
        return self._update("transactions", {"user_id": user_id, "transaction_id": transaction_id}, updates)

    def delete_transaction(self, user_id: str, transaction_id: str) -> bool:
        return self._delete("transactions", {"user_id": user_id, "transaction_id": transaction_id})

    def list_transactions(
        self,
        user_id: str,
        type: Optional[str] = None,
        status: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        is_recurring: Optional[bool] = None,
    ) -> List[dict]:
        condition = _all_of(
            Attr("type").eq(type) if type else None,
            Attr("status").eq(status) if status else None,
            _date_range(start, end),
            Attr("is_recurring").eq(is_recurring) if is_recurring is not None else None,
        )
        return self._query("transactions", user_id, condition)

    def scan_due_recurring_transactions(self, due_before: datetime) -> List[dict]:
        """Active recurring transactions of every user whose next due date is before ``due_before``."""
        condition = _all_of(
            Attr("is_recurring").eq(True),
            Attr("status").eq("active"),
            Attr("next_due_date").lte(due_before.isoformat()),
        )
        return self._scan("transactions", condition)

    def put_budget(self, item: dict) -> dict:
        return self._put("budgets", item)

    def get_budget(self, user_id: str, budget_id: str) -> Optional[dict]:
        return self._get("budgets", {"user_id": user_id, "budget_id": budget_id})

    def get_shared_budget(self, user_id: str, budget_id: str) -> Optional[dict]:
        """A budget some other user shared with ``user_id``."""
        items = self._scan(
            "budgets",
            Attr("budget_id").eq(budget_id) & Attr("shared_user_ids").contains(user_id),
        )
        return items[0] if items else None

    def update_budget(self, user_id: str, budget_id: str, updates: dict) -> Optional[dict]:
        return self._update("budgets", {"user_id": user_id, "budget_id": budget_id}, updates)

    def delete_budget(self, user_id: str, budget_id: str) -> bool:
        return self._delete("budgets", {"user_id": user_id, "budget_id": budget_id})

    def list_budgets(self, user_id: str) -> List[dict]:
        return self._query("budgets", user_id)

    def scan_budgets_with_alerts(self) -> List[dict]:
        return self._scan("budgets", Attr("alerts.enabled").eq(True))

    def put_category(self, item: dict) -> dict:
        return self._put("categories", item)

    def get_category(self, owner_id: str, category_id: str) -> Optional[dict]:
        return self._get("categories", {"owner_id": owner_id, "category_id": category_id})

    def find_visible_category(self, user_id: str, category_id: str) -> Optional[dict]:
        """A category the user owns, or a default category."""
        return self.get_category(user_id, category_id) or self.get_category(DEFAULT_OWNER, category_id)

    def update_category(self, owner_id: str, category_id: str, updates: dict) -> Optional[dict]:
        return self._update("categories", {"owner_id": owner_id, "category_id": category_id}, updates)

    def delete_category(self, owner_id: str, category_id: str) -> bool:
        return self._delete("categories", {"owner_id": owner_id, "category_id": category_id})

    def list_categories(self, user_id: str) -> List[dict]:
        """User-created categories plus the default ones, sorted by name."""
        items = self._query("categories", user_id) + self._query("categories", DEFAULT_OWNER)
        return sorted(items, key=lambda item: item["name"].lower())

    def _failure(self, operation: str, error: Exception) -> StoreFailure:
        if isinstance(error, ClientError):
            message = error.response["Error"]["Message"]
        else:
            message = str(error)
        logger.error(f"[ERROR] {operation} failed: {message}")
        return StoreFailure(f"{operation} failed: {message}", cause=error)

    def _put(self, table: str, item: dict) -> dict:
        # Unset optional fields are left out rather than stored as NULL
        stored = {k: v for k, v in item.items() if v is not None}
        try:
            self.tables[table].put_item(Item=_convert_for_dynamo(stored))
            return stored
        except (ClientError, BotoCoreError) as e:
            raise self._failure(f"put_{table}", e)

    def _get(self, table: str, key: dict) -> Optional[dict]:
        try:
            response = self.tables[table].get_item(Key=key)
        except (ClientError, BotoCoreError) as e:
            raise self._failure(f"get_{table}", e)
        item = response.get("Item")
        return _from_dynamo(item) if item else None

    def _update(self, table: str, key: dict, updates: dict) -> Optional[dict]:
        """
        Apply partial updates to an existing item. Returns the updated item,
        or None when no item exists under ``key``.
        """
        if not updates:
            return self._get(table, key)

        set_parts = []
        remove_parts = []
        expression_attribute_values = {}
        expression_attribute_names = {"#pk": TABLE_KEYS[table][0]}

        for idx, (field, value) in enumerate(updates.items()):
            placeholder = f"#f{idx}"
            expression_attribute_names[placeholder] = field
            if value is None:
                remove_parts.append(placeholder)
                continue
            value_placeholder = f":v{idx}"
            set_parts.append(f"{placeholder} = {value_placeholder}")
            expression_attribute_values[value_placeholder] = value

        update_expression = ""
        if set_parts:
            update_expression = "SET " + ", ".join(set_parts)
        if remove_parts:
            update_expression += " REMOVE " + ", ".join(remove_parts)

        kwargs = {
            "Key": key,
            "UpdateExpression": update_expression.strip(),
            "ConditionExpression": "attribute_exists(#pk)",
            "ExpressionAttributeNames": expression_attribute_names,
            "ReturnValues": "ALL_NEW",
        }
        if expression_attribute_values:
            kwargs["ExpressionAttributeValues"] = _convert_for_dynamo(expression_attribute_values)

        try:
            response = self.tables[table].update_item(**kwargs)
        except ClientError as e:
            if e.response["Error"]["Code"] == "ConditionalCheckFailedException":
                return None
            raise self._failure(f"update_{table}", e)
        except BotoCoreError as e:
            raise self._failure(f"update_{table}", e)
        attributes = response.get("Attributes")
        return _from_dynamo(attributes) if attributes else None

    def _delete(self, table: str, key: dict) -> bool:
        try:
            response = self.tables[table].delete_item(Key=key, ReturnValues="ALL_OLD")
            return "Attributes" in response
        except (ClientError, BotoCoreError) as e:
            raise self._failure(f"delete_{table}", e)

    def _query(self, table: str, partition: str, condition=None) -> List[dict]:
        partition_key = TABLE_KEYS[table][0]
        kwargs = {"KeyConditionExpression": Key(partition_key).eq(partition)}
        if condition is not None:
            kwargs["FilterExpression"] = condition
        return self._collect(table, "query", kwargs)

    def _scan(self, table: str, condition=None) -> List[dict]:
        kwargs = {}
        if condition is not None:
            kwargs["FilterExpression"] = condition
        return self._collect(table, "scan", kwargs)

    def _collect(self, table: str, operation: str, kwargs: dict) -> List[dict]:
        """Follow LastEvaluatedKey until the whole result set is read."""
        items: List[dict] = []
        call = getattr(self.tables[table], operation)
        try:
            while True:
                response = call(**kwargs)
                items.extend(_from_dynamo(item) for item in response.get("Items", []))
                last_key = response.get("LastEvaluatedKey")
                if not last_key:
                    return items
                kwargs["ExclusiveStartKey"] = last_key
        except (ClientError, BotoCoreError) as e:
            raise self._failure(f"{operation}_{table}", e)


def _convert_for_dynamo(obj: Any):
    """
    Recursively convert floats to Decimal for DynamoDB compatibility.
    """
    if isinstance(obj, float):
        return Decimal(str(obj))
    if isinstance(obj, dict):
        return {k: _convert_for_dynamo(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_convert_for_dynamo(v) for v in obj]
    return obj


def _from_dynamo(obj: Any):
    """
    Recursively convert Decimal instances back to native Python numeric types.
    """
    if isinstance(obj, list):
        return [_from_dynamo(item) for item in obj]
    if isinstance(obj, dict):
        return {k: _from_dynamo(v) for k, v in obj.items()}
    if isinstance(obj, Decimal):
        if obj % 1 == 0:
            return int(obj)
        return float(obj)
    return obj
