import unittest

from rewards import create_app
from rewards.errors import ConflictError, InvalidInputError
from rewards.extensions import db
from rewards.models import CatalogItem, GlobalSettings
from rewards.services import catalog_service, settings_service


class SettingsServiceTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls.app = create_app({
            "SECRET_KEY": "test",
            "SQLALCHEMY_DATABASE_URI": "sqlite:///:memory:",
            "SQLALCHEMY_TRACK_MODIFICATIONS": False,
            "TESTING": True,
        })
        cls.ctx = cls.app.app_context()
        cls.ctx.push()
        db.create_all()

    @classmethod
    def tearDownClass(cls):
        db.session.remove()
        db.drop_all()
        cls.ctx.pop()

    def setUp(self):
        db.session.query(CatalogItem).delete()
        db.session.query(GlobalSettings).delete()
        db.session.commit()

    def test_defaults_created_on_first_read(self):
        settings = settings_service.get_settings()
        self.assertEqual(settings.theme, settings_service.DEFAULT_THEME)
        self.assertEqual(settings.inflation_bps, 0)
        self.assertEqual(settings.logo_ref, settings_service.DEFAULT_LOGO_REF)
        self.assertEqual(db.session.query(GlobalSettings).count(), 1)

    def test_theme_and_logo_update(self):
        result = settings_service.update_settings(theme="emerald", logo_ref="data:image/png;base64,AAAA")
        self.assertEqual(result["repriced"], 0)
        self.assertEqual(result["settings"].theme, "emerald")
        self.assertEqual(settings_service.get_settings().logo_ref, "data:image/png;base64,AAAA")

    def test_unknown_theme_rejected(self):
        with self.assertRaises(InvalidInputError):
            settings_service.update_settings(theme="neon")

    def test_oversized_logo_rejected(self):
        with self.assertRaises(InvalidInputError):
            settings_service.update_settings(logo_ref="x" * (settings_service.MAX_LOGO_REF_LENGTH + 1))

    def test_inflation_below_minus_hundred_rejected(self):
        catalog_service.create_item(name="Widget", base_price=100, stock=1)
        with self.assertRaises(InvalidInputError):
            settings_service.update_settings(inflation_percent=-150)
        self.assertEqual(settings_service.current_inflation_bps(), 0)
        self.assertEqual(db.session.query(CatalogItem).one().current_price, 100)

    def test_stale_version_rejected(self):
        version = settings_service.get_settings().version_id
        settings_service.update_settings(theme="sky", expected_version=version)

        with self.assertRaises(ConflictError):
            settings_service.update_settings(theme="rose", expected_version=version)
        self.assertEqual(settings_service.get_settings().theme, "sky")

    def test_inflation_and_prices_change_together(self):
        item = catalog_service.create_item(name="Widget", base_price=100, stock=1)
        settings_service.update_settings(inflation_percent=15, actor_account_id=None)

        settings = settings_service.get_settings()
        self.assertEqual(settings.inflation_bps, 1500)
        self.assertEqual(settings.inflation_percent, 15.0)
        self.assertEqual(db.session.get(CatalogItem, item.id).current_price, 115)


if __name__ == "__main__":
    unittest.main()
