"""Tests for jumpstarter.scaffolder.context."""

from __future__ import annotations

import pytest

from jumpstarter.config import Config
from jumpstarter.scaffolder.context import ScaffoldContext
from jumpstarter.scaffolder.errors import AnchorNotFound, ExternalCommandFailure
from jumpstarter.scaffolder.gemfile import GemDependency
from jumpstarter.scaffolder.runner import CommandResult
from jumpstarter.scaffolder.templates import BUNDLED_TEMPLATE_DIR

pytestmark = pytest.mark.unit


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


class TestCommands:
    @pytest.mark.asyncio
    async def test_run_uses_project_root(self, ctx, fake_runner):
        await ctx.run("spring", "stop")
        assert fake_runner.calls == [(["spring", "stop"], ctx.root)]
        assert [result.argv for result in ctx.commands] == [("spring", "stop")]

    @pytest.mark.asyncio
    async def test_failure_raises_with_stderr(self, ctx, fake_runner):
        fake_runner.fail("yarn add", returncode=1, stderr="error Couldn't find package")
        with pytest.raises(ExternalCommandFailure) as excinfo:
            await ctx.yarn_add("@popperjs/core")
        assert excinfo.value.returncode == 1
        assert excinfo.value.argv == ["yarn", "add", "@popperjs/core"]
        assert "Couldn't find package" in str(excinfo.value)

    @pytest.mark.asyncio
    async def test_generate_splits_words(self, ctx, fake_runner):
        await ctx.generate("model Announcement published_at:datetime", "name")
        assert fake_runner.commands == ["bin/rails generate model Announcement published_at:datetime name"]

    @pytest.mark.asyncio
    async def test_rails_command_uses_configured_binary(self, skeleton, fake_runner):
        ctx = ScaffoldContext(Config(app_path=skeleton, rails_bin="bin/custom-rails"), fake_runner)
        await ctx.rails_command("sitemap:install")
        assert fake_runner.commands == ["bin/custom-rails sitemap:install"]

    @pytest.mark.asyncio
    async def test_verbose_echoes_output(self, skeleton, capsys):
        class EchoRunner:
            async def run(self, argv, cwd=None, env=None):
                return CommandResult(tuple(argv), 0, "Bundle [complete]!", "")

        ctx = ScaffoldContext(Config(app_path=skeleton, verbose=True), EchoRunner())
        await ctx.run("bundle", "install")
        assert "Bundle [complete]!" in capsys.readouterr().out


# ---------------------------------------------------------------------------
# Rails version
# ---------------------------------------------------------------------------


class TestRailsVersion:
    def test_locked_version_above_minimum(self, ctx):
        assert ctx.rails_version_satisfies("5.2")
        assert not ctx.rails_version_satisfies("6.1.4")
        assert ctx.rails_version_satisfies("6.1.4", inclusive=True)

    def test_unknown_version_counts_as_current(self, skeleton, fake_runner):
        (skeleton / "Gemfile.lock").unlink()
        ctx = ScaffoldContext(Config(app_path=skeleton), fake_runner)
        assert ctx.rails_version is None
        assert ctx.rails_version_satisfies("5.2")

    def test_template_context(self, ctx):
        assert ctx.template_context(extra=1) == {"app_name": "myapp", "rails_version": "6.1.4", "extra": 1}


# ---------------------------------------------------------------------------
# File helpers
# ---------------------------------------------------------------------------


class TestFileHelpers:
    def test_insert_requires_exactly_one_anchor(self, ctx):
        with pytest.raises(ValueError):
            ctx.insert_into_file("README.md", "x")
        with pytest.raises(ValueError):
            ctx.insert_into_file("README.md", "x", before="a", after="b")

    def test_insert_missing_anchor(self, ctx):
        with pytest.raises(AnchorNotFound):
            ctx.insert_into_file("config/routes.rb", ", controllers: {}", after="  devise_for :users")

    def test_route_and_environment(self, ctx):
        ctx.route("root to: 'home#index'")
        ctx.environment("config.active_job.queue_adapter = :sidekiq")
        ctx.environment("config.action_mailer.raise_delivery_errors = false", env="development")

        routes = ctx.path("config/routes.rb").read_text(encoding="utf-8")
        assert routes.startswith("Rails.application.routes.draw do\n  root to: 'home#index'\n")
        application = ctx.path("config/application.rb").read_text(encoding="utf-8")
        assert "Rails::Application\n    config.active_job.queue_adapter = :sidekiq\n" in application
        development = ctx.path("config/environments/development.rb").read_text(encoding="utf-8")
        assert "configure do\n  config.action_mailer.raise_delivery_errors = false\n" in development

    def test_gem_and_group(self, ctx):
        ctx.gem(GemDependency(name="pundit", versions=["~> 2.1"]))
        ctx.gem_group(["test"], [GemDependency(name="database_cleaner")])
        text = ctx.path("Gemfile").read_text(encoding="utf-8")
        assert text.endswith('gem "pundit", "~> 2.1"\n\ngroup :test do\n  gem "database_cleaner"\nend\n')

    def test_remove_missing_file_is_quiet(self, ctx, capsys):
        ctx.remove_file("config/nope.yml")
        assert "remove" not in capsys.readouterr().out

    def test_relative(self, ctx, tmp_path):
        assert ctx.relative(ctx.root / "config" / "routes.rb") == "config/routes.rb"
        assert ctx.relative(tmp_path / "elsewhere") == str(tmp_path / "elsewhere")


# ---------------------------------------------------------------------------
# Templates
# ---------------------------------------------------------------------------


class TestTemplateHelpers:
    def test_renderer_defaults_to_bundled(self, ctx):
        assert ctx.renderer.source_paths == [BUNDLED_TEMPLATE_DIR]

    def test_add_source_path_goes_first_and_resets_renderer(self, ctx, tmp_path):
        first = ctx.renderer
        ctx.add_source_path(BUNDLED_TEMPLATE_DIR)
        ctx.add_source_path(tmp_path)
        assert ctx.renderer is not first
        assert ctx.renderer.source_paths == [tmp_path, BUNDLED_TEMPLATE_DIR]

    @pytest.mark.asyncio
    async def test_copy_template_and_directory(self, ctx):
        await ctx.copy_file("Procfile")
        await ctx.template("database.yml.j2", "config/database.yml")
        await ctx.directory("features")

        assert ctx.path("Procfile").is_file()
        assert "myapp_development" in ctx.path("config/database.yml").read_text(encoding="utf-8")
        assert ctx.path("features/step_definitions/navigation_steps.rb").is_file()
