# This file is part of Userbook.
#
# Userbook is free software: you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# Userbook is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU General Public License for more details.
#
# You should have received a copy of the GNU General Public License
# along with Userbook.  If not, see <https://www.gnu.org/licenses/>.
from flask import Flask
from flask_caching import Cache
from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy

from config import Config

# Initialize extensions
cache = Cache()
db = SQLAlchemy()
migrate = Migrate()


def create_app(config_class=Config):
    """
    The application factory.
    """
    app = Flask(__name__)
    app.config.from_object(config_class)
    app.logger.setLevel(app.config.get("LOG_LEVEL", "INFO"))

    # Initialize extensions with the app
    cache.init_app(app)
    db.init_app(app)
    migrate.init_app(app, db)

    # Models must be imported before create_all() or a migration sees them.
    from userbook import models  # noqa: F401  pylint: disable=unused-import,import-outside-toplevel

    # Register blueprints
    from userbook.main import bp as main_bp  # pylint: disable=import-outside-toplevel

    app.register_blueprint(main_bp)

    return app
