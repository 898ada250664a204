"""Shared pytest fixtures for the jumpstarter test suite.

Provides reusable fixtures for:
- A bare Rails skeleton directory (what ``rails new`` leaves behind)
- A recording fake ``CommandRunner`` that emulates the Rails generators by
  writing the files they would create
- Config objects pointing at the skeleton
- Mock asyncio subprocess helpers
"""

from __future__ import annotations

import textwrap
from collections.abc import Sequence
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from jumpstarter.config import Config
from jumpstarter.scaffolder.context import ScaffoldContext
from jumpstarter.scaffolder.runner import CommandResult


# ---------------------------------------------------------------------------
# Skeleton files
# ---------------------------------------------------------------------------

GEMFILE = textwrap.dedent("""\
    source 'https://rubygems.org'
    git_source(:github) { |repo| "https://github.com/#{repo}.git" }

    ruby '2.7.2'

    gem 'rails', '~> 6.1.4'
    gem 'pg', '~> 1.1'
    gem 'puma', '~> 5.0'
    gem 'webpacker', '~> 5.0'
    gem 'bootsnap', '>= 1.4.4', require: false

    group :development do
      gem 'listen', '~> 3.3'
      gem 'spring'
    end
    """)

GEMFILE_LOCK = textwrap.dedent("""\
    GEM
      remote: https://rubygems.org/
      specs:
        rails (6.1.4)
          actionpack (= 6.1.4)
          railties (= 6.1.4)

    DEPENDENCIES
      rails (~> 6.1.4)
    """)

ROUTES = textwrap.dedent("""\
    Rails.application.routes.draw do
      # For details on the DSL available within this file, see https://guides.rubyonrails.org/routing.html
    end
    """)

APPLICATION = textwrap.dedent("""\
    require_relative "boot"

    require "rails/all"

    Bundler.require(*Rails.groups)

    module Myapp
      class Application < Rails::Application
        config.load_defaults 6.1
      end
    end
    """)

DEVELOPMENT_ENV = textwrap.dedent("""\
    require "active_support/core_ext/integer/time"

    Rails.application.configure do
      config.cache_classes = false
    end
    """)

README = textwrap.dedent("""\
    # README

    This README would normally document whatever steps are necessary to get the
    application up and running.
    """)

SQLITE_DATABASE = textwrap.dedent("""\
    default: &default
      adapter: sqlite3

    development:
      <<: *default
      database: db/development.sqlite3
    """)


def build_skeleton(root: Path) -> Path:
    """Write a minimal ``rails new`` tree under *root*."""
    files = {
        "Gemfile": GEMFILE,
        "Gemfile.lock": GEMFILE_LOCK,
        "config/routes.rb": ROUTES,
        "config/application.rb": APPLICATION,
        "config/environments/development.rb": DEVELOPMENT_ENV,
        "config/database.yml": SQLITE_DATABASE,
        "README.md": README,
    }
    for relative, content in files.items():
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
    (root / "db" / "migrate").mkdir(parents=True)
    return root


# ---------------------------------------------------------------------------
# Generator emulation
# ---------------------------------------------------------------------------

DEVISE_INITIALIZER = textwrap.dedent("""\
    Devise.setup do |config|
      # The secret key used by Devise.
      # config.secret_key = '2b1a0c9e8f7d6c5b4a39281706f5e4d3c2b1a0'

      # ==> Mailer Configuration
      config.mailer_sender = 'please-change-me-at-config-initializers-devise@example.com'

      # ==> Warden configuration
      # config.warden do |manager|
      # end
    end
    """)

USER_MODEL = textwrap.dedent("""\
    class User < ApplicationRecord
      # Include default devise modules. Others available are:
      # :confirmable, :lockable, :timeoutable, :trackable and :omniauthable
      devise :database_authenticatable, :registerable,
             :recoverable, :rememberable, :validatable
    end
    """)

USERS_MIGRATION = textwrap.dedent("""\
    class DeviseCreateUsers < ActiveRecord::Migration[6.1]
      def change
        create_table :users do |t|
          t.string :email,              null: false, default: ""
          t.string :first_name
          t.string :last_name
          t.datetime :announcements_last_read_at
          t.boolean :admin
          t.timestamps null: false
        end
      end
    end
    """)

FRIENDLY_ID_MIGRATION = textwrap.dedent("""\
    class CreateFriendlyIdSlugs < ActiveRecord::Migration
      def change
        create_table :friendly_id_slugs do |t|
          t.string :slug, null: false
        end
      end
    end
    """)


class FakeRunner:
    """Records every command and emulates the generators' file writes.

    Attributes:
        calls: ``(argv, cwd)`` for every command, in order.
        failures: Maps a command prefix (space-joined argv) to
            ``(returncode, stderr)``; a matching command "fails".
        versioned_friendly_id: Emit ``ActiveRecord::Migration[6.1]`` from the
            friendly_id generator, as newer releases do.
    """

    def __init__(self) -> None:
        self.calls: list[tuple[list[str], Path | None]] = []
        self.failures: dict[str, tuple[int, str]] = {}
        self.versioned_friendly_id = False
        self._migration_counter = 20210101000000

    @property
    def commands(self) -> list[str]:
        return [" ".join(argv) for argv, _ in self.calls]

    def fail(self, prefix: str, returncode: int = 1, stderr: str = "boom") -> None:
        self.failures[prefix] = (returncode, stderr)

    async def run(
        self,
        argv: Sequence[str],
        cwd: str | Path | None = None,
        env: dict[str, str] | None = None,
    ) -> CommandResult:
        argv = list(argv)
        root = Path(cwd) if cwd else None
        self.calls.append((argv, root))
        joined = " ".join(argv)
        for prefix, (code, stderr) in self.failures.items():
            if joined.startswith(prefix):
                return CommandResult(tuple(argv), code, "", stderr)
        if root is not None:
            self._emulate(argv, root)
        return CommandResult(tuple(argv), 0, "", "")

    # -- generator side effects ------------------------------------------

    def _emulate(self, argv: list[str], root: Path) -> None:
        if argv[:2] != ["bin/rails", "generate"]:
            return
        what = argv[2:]
        if what == ["devise:install"]:
            self._write(root / "config/initializers/devise.rb", DEVISE_INITIALIZER)
        elif what[:2] == ["devise", "User"]:
            self._write(root / "app/models/user.rb", USER_MODEL)
            self._write(self._migration(root, "devise_create_users"), USERS_MIGRATION)
            routes = root / "config/routes.rb"
            text = routes.read_text(encoding="utf-8")
            anchor = "Rails.application.routes.draw do\n"
            routes.write_text(text.replace(anchor, anchor + "  devise_for :users\n", 1), encoding="utf-8")
        elif what == ["friendly_id"]:
            content = FRIENDLY_ID_MIGRATION
            if self.versioned_friendly_id:
                content = content.replace(
                    "class CreateFriendlyIdSlugs < ActiveRecord::Migration\n",
                    "class CreateFriendlyIdSlugs < ActiveRecord::Migration[6.1]\n",
                )
            self._write(self._migration(root, "create_friendly_id_slugs"), content)
        elif what[:2] == ["model", "Announcement"]:
            self._write(self._migration(root, "create_announcements"), "class CreateAnnouncements\nend\n")
        elif what[:2] == ["model", "Service"]:
            self._write(self._migration(root, "create_services"), "class CreateServices\nend\n")

    def _migration(self, root: Path, name: str) -> Path:
        self._migration_counter += 1
        return root / "db" / "migrate" / f"{self._migration_counter}_{name}.rb"

    @staticmethod
    def _write(path: Path, content: str) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def skeleton(tmp_path: Path) -> Path:
    """A bare Rails skeleton at ``<tmp>/myapp``."""
    return build_skeleton(tmp_path / "myapp")


@pytest.fixture
def fake_runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def config(skeleton: Path) -> Config:
    """Config for the skeleton with git and bundler left on."""
    return Config(app_path=skeleton)


@pytest.fixture
def ctx(config: Config, fake_runner: FakeRunner) -> ScaffoldContext:
    """A context over the skeleton using the fake runner."""
    return ScaffoldContext(config, fake_runner)


@pytest.fixture
def mock_subprocess():
    """Mock asyncio subprocess for testing command execution.

    Returns a factory that creates mock subprocess instances with configurable
    stdout, stderr, and return codes.

    Usage:
        def test_command(mock_subprocess):
            proc = mock_subprocess(stdout="output", returncode=0)
            with patch("asyncio.create_subprocess_exec", AsyncMock(return_value=proc)):
                ...
    """
    def factory(
        stdout: str = "",
        stderr: str = "",
        returncode: int = 0,
    ) -> AsyncMock:
        mock_proc = AsyncMock()
        mock_proc.communicate = AsyncMock(
            return_value=(stdout.encode("utf-8"), stderr.encode("utf-8"))
        )
        mock_proc.returncode = returncode
        mock_proc.pid = 99999
        mock_proc.kill = MagicMock()
        mock_proc.wait = AsyncMock(return_value=returncode)
        return mock_proc

    return factory
