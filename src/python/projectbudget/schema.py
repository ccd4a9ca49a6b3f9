"""Database schema constants."""

from __future__ import annotations

FLAG_Y = "Y"
FLAG_N = "N"

RECORD_KINDS = ("expense", "income")
RECORD_TABLES = {
    "expense": "Expense",
    "income": "Income",
}

ATTACHMENT_SOURCES = {"upload", "contact"}
DEFAULT_ATTACHMENT_SOURCE = "upload"
DEFAULT_ACCOUNT_TYPE = "Bank"
DEFAULT_TRANSACTION_LIMIT = 20
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"

ACCOUNT_COLUMNS = [
    "key",
    "name",
    "accountType",
    "bankName",
    "accountNumber",
    "balance",
    "isPrimary",
    "isActive",
    "createdAt",
    "updatedAt",
]

EXPENSE_COLUMNS = [
    "key",
    "projectCode",
    "accountCode",
    "description",
    "amount",
    "netAmount",
    "status",
    "accountKey",
    "approvedBy",
    "approvedAt",
    "rejectedBy",
    "rejectedAt",
    "rejectReason",
    "paymentDate",
    "issueDate",
    "dueDate",
    "createdAt",
    "updatedAt",
]

INCOME_COLUMNS = [
    "key",
    "projectCode",
    "description",
    "invoiceNo",
    "amount",
    "dueDate",
    "status",
    "accountKey",
    "createdAt",
    "updatedAt",
]

SCHEMA_STATEMENTS = [
    """
    CREATE TABLE IF NOT EXISTS Account (
        key INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL,
        accountType TEXT NOT NULL,
        bankName TEXT,
        accountNumber TEXT,
        balance TEXT NOT NULL DEFAULT '0.00',
        isPrimary TEXT NOT NULL DEFAULT 'N' CHECK (isPrimary IN ('Y', 'N')),
        isActive TEXT NOT NULL DEFAULT 'Y' CHECK (isActive IN ('Y', 'N')),
        createdAt TEXT NOT NULL,
        updatedAt TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS Expense (
        key INTEGER PRIMARY KEY AUTOINCREMENT,
        projectCode TEXT NOT NULL,
        accountCode TEXT NOT NULL,
        description TEXT,
        amount TEXT NOT NULL,
        netAmount TEXT,
        status TEXT NOT NULL,
        accountKey INTEGER REFERENCES Account (key),
        approvedBy TEXT,
        approvedAt TEXT,
        rejectedBy TEXT,
        rejectedAt TEXT,
        rejectReason TEXT,
        paymentDate TEXT,
        issueDate TEXT,
        dueDate TEXT,
        createdAt TEXT NOT NULL,
        updatedAt TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS Income (
        key INTEGER PRIMARY KEY AUTOINCREMENT,
        projectCode TEXT NOT NULL,
        description TEXT,
        invoiceNo TEXT,
        amount TEXT NOT NULL,
        dueDate TEXT,
        status TEXT NOT NULL,
        accountKey INTEGER REFERENCES Account (key),
        createdAt TEXT NOT NULL,
        updatedAt TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS Attachment (
        key INTEGER PRIMARY KEY AUTOINCREMENT,
        recordKind TEXT NOT NULL CHECK (recordKind IN ('expense', 'income')),
        recordKey INTEGER NOT NULL,
        fileName TEXT NOT NULL,
        filePath TEXT NOT NULL,
        source TEXT NOT NULL DEFAULT 'upload',
        createdAt TEXT NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_expense_project ON Expense (projectCode)",
    "CREATE INDEX IF NOT EXISTS idx_income_project ON Income (projectCode)",
    "CREATE INDEX IF NOT EXISTS idx_attachment_record ON Attachment (recordKind, recordKey)",
]
