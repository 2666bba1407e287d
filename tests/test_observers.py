import asyncio
import json
import smtplib

import httpx
import psycopg
import pytest

from helpers import make_listing, make_settings

from config.settings import CsvConfig, DatabaseConfig, MailConfig, TelegramConfig
from core.errors import ConfigError, DeliveryError
from core.models import ContractType, PropertyType
from observers import CsvObserver, DatabaseObserver, MailObserver, TelegramObserver, build_observers
from observers.mail import build_message
from observers.telegram import format_message, listing_url


# -----------------------
# Registry
# -----------------------
def test_build_observers_follows_enabled_blocks():
    settings = make_settings(csv=CsvConfig(enabled=True), telegram=TelegramConfig(enabled=True))
    assert [o.name for o in build_observers(settings)] == ["telegram", "csv"]


def test_nothing_enabled_means_no_observers():
    assert build_observers(make_settings()) == []


# -----------------------
# Telegram
# -----------------------
def telegram_settings():
    return make_settings(telegram=TelegramConfig(enabled=True, api_key="KEY", chat_id="42"))


def test_telegram_message_for_a_house():
    listing = make_listing(
        source="immowelt",
        property_type=PropertyType.HOUSE,
        contract_type=ContractType.BUY,
        price=1250000.0,
        squaremeters=180.0,
        plot_squaremeters=650.0,
        rooms=5.5,
        title="Family house",
    )
    msg = format_message(listing)
    assert msg.splitlines()[0] == "Hey guys, found *a new house on immowelt*!"
    assert "Buying the house costs *1,250,000 €*." in msg
    assert "It has *5.5 rooms* and *180 sqm*." in msg
    assert msg.endswith("Plot of land has a size of *650 sqm*.")


def test_expose_url_derived_when_missing():
    listing = make_listing(source="wggesucht", externalid="777", url="")
    assert listing_url(listing) == "https://www.wg-gesucht.de/777"


def test_telegram_init_requires_credentials():
    with pytest.raises(ConfigError):
        TelegramObserver().init(make_settings(telegram=TelegramConfig(enabled=True, api_key="KEY")))
    TelegramObserver().init(telegram_settings())


def test_telegram_posts_markdown_message():
    sent = {}

    def handler(request):
        sent["url"] = str(request.url)
        sent["body"] = json.loads(request.content)
        return httpx.Response(200, json={"ok": True})

    observer = TelegramObserver(transport=httpx.MockTransport(handler))
    asyncio.run(observer.deliver(telegram_settings(), make_listing()))

    assert sent["url"] == "https://api.telegram.org/botKEY/sendMessage"
    assert sent["body"]["chat_id"] == "42"
    assert sent["body"]["parse_mode"] == "Markdown"
    assert "[Nice Flat](https://example.com/123)" in sent["body"]["text"]


def test_telegram_error_status_is_delivery_error():
    observer = TelegramObserver(transport=httpx.MockTransport(lambda r: httpx.Response(400, text="bad chat")))
    with pytest.raises(DeliveryError) as exc:
        asyncio.run(observer.deliver(telegram_settings(), make_listing()))
    assert "bad chat" in str(exc.value)


# -----------------------
# Mail
# -----------------------
class FakeSMTP:
    instances = []

    def __init__(self, host, port, timeout=None):
        self.host = host
        self.port = port
        self.sent = []
        self.logged_in = None
        FakeSMTP.instances.append(self)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def starttls(self):
        pass

    def login(self, user, password):
        if password == "wrong":
            raise smtplib.SMTPAuthenticationError(535, b"auth failed")
        self.logged_in = user

    def send_message(self, msg):
        self.sent.append(msg)


def mail_settings(password="secret"):
    return make_settings(mail=MailConfig(enabled=True, smtp_server="smtp.test", username="me@test", password=password))


def test_mail_message_mentions_price_and_link():
    html = build_message(make_listing(price=1000.0))
    assert "costs <b>1,000 €</b>" in html
    assert "href='https://example.com/123'" in html
    assert "Plot of land" not in html


def test_mail_is_sent_to_the_account_itself():
    FakeSMTP.instances.clear()
    asyncio.run(MailObserver(smtp_factory=FakeSMTP).deliver(mail_settings(), make_listing()))

    smtp = FakeSMTP.instances[0]
    assert (smtp.host, smtp.port) == ("smtp.test", 587)
    assert smtp.logged_in == "me@test"
    msg = smtp.sent[0]
    assert msg["To"] == "me@test"
    assert msg["Subject"] == "Found new flat: Nice Flat"


def test_mail_failure_is_delivery_error():
    with pytest.raises(DeliveryError):
        asyncio.run(MailObserver(smtp_factory=FakeSMTP).deliver(mail_settings("wrong"), make_listing()))


def test_mail_init_requires_server():
    with pytest.raises(ConfigError):
        MailObserver().init(make_settings(mail=MailConfig(enabled=True)))


# -----------------------
# Database
# -----------------------
class FakeDocumentStore:
    def __init__(self, dsn, collection_name, fail_setup=False):
        self.dsn = dsn
        self.collection_name = collection_name
        self.fail_setup = fail_setup
        self.documents = {}

    def setup_schema(self):
        if self.fail_setup:
            raise psycopg.OperationalError("connection refused")

    def upsert(self, document):
        self.documents[document["identity"]] = document


def db_settings():
    return make_settings(database=DatabaseConfig(enabled=True, dsn="postgresql://test/db", collection_name="flats"))


def test_database_observer_upserts_documents():
    observer = DatabaseObserver(store_factory=FakeDocumentStore)
    settings = db_settings()
    observer.init(settings)
    asyncio.run(observer.deliver(settings, make_listing()))

    assert observer.store.collection_name == "flats"
    assert observer.store.documents["siteA-123"]["detail"]["title"] == "Nice Flat"


def test_database_unreachable_at_init_is_config_error():
    observer = DatabaseObserver(store_factory=lambda dsn, name: FakeDocumentStore(dsn, name, fail_setup=True))
    with pytest.raises(ConfigError):
        observer.init(db_settings())


def test_database_init_requires_dsn():
    with pytest.raises(ConfigError):
        DatabaseObserver(store_factory=FakeDocumentStore).init(make_settings(database=DatabaseConfig(enabled=True)))


def test_csv_observer_has_no_init_requirements():
    CsvObserver().init(make_settings(csv=CsvConfig(enabled=True)))
