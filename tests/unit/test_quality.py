"""Unit tests for dependency quality checks."""

import json

import pytest

from repoguard.adapters.npm_adapter import NpmAdapter
from repoguard.adapters.process_runner import ProcessTimeoutError
from repoguard.checks import CheckContext
from repoguard.checks.quality import (
    check_duplicate_dependencies,
    check_peer_dependencies,
    check_unused_dependencies,
    find_duplicates,
    find_unmet_peers,
    find_unused,
    imported_packages,
    package_name,
)
from repoguard.checks.security import check_sbom
from repoguard.config import Settings
from repoguard.models.process import ProcessResult

LS_TREE = {
    "name": "demo",
    "dependencies": {
        "lodash": {"version": "4.17.21"},
        "webpack": {
            "version": "5.90.0",
            "dependencies": {
                "lodash": {"version": "4.17.15"},
                "acorn": {"version": "8.11.0"},
            },
        },
        "acorn": {"version": "8.11.0"},
    },
}


def _context(root, runner=None, **overrides):
    settings = Settings(_env_file=None, **overrides)
    context = CheckContext(root=root, settings=settings, runner=runner)
    if runner is not None:
        context.npm = NpmAdapter(runner, settings, npm_path="npm")
    return context


def _ls_result(tree, exit_code=0):
    outcome = "success" if exit_code == 0 else "finding"
    return ProcessResult(json.dumps(tree), "", exit_code, outcome=outcome)


class TestImportDetection:
    """Test cases for import specifier parsing."""

    @pytest.mark.parametrize(
        "specifier, expected",
        [
            ("react", "react"),
            ("lodash/merge", "lodash"),
            ("@scope/pkg", "@scope/pkg"),
            ("@scope/pkg/sub/path", "@scope/pkg"),
            ("./local", None),
            ("../up", None),
            ("/abs/path", None),
            ("node:fs", None),
            ("@scope", None),
        ],
    )
    def test_package_name(self, specifier, expected):
        """Test specifiers map to package names."""
        assert package_name(specifier) == expected

    def test_imported_packages(self):
        """Test the supported import forms."""
        source = "\n".join([
            "import React from 'react';",
            'import { merge } from "lodash/merge";',
            "import './styles.css';",
            "const express = require('express');",
            "const chalk = await import(`chalk`);",
            "export * from '@scope/utils';",
            "import helper from './helper';",
        ])

        assert imported_packages(source) == {"react", "lodash", "express", "chalk", "@scope/utils"}

    def test_find_unused(self):
        """Test imports, scripts and allow-list patterns count as used."""
        unused = find_unused(
            ["react", "jest", "@types/node", "left-pad", "eslint-plugin-x"],
            {"react"},
            {"test": "jest --coverage"},
            ["@types/*", "eslint-plugin-*"],
        )

        assert unused == ["left-pad"]


class TestUnusedDependencies:
    """Test cases for the unused dependencies check."""

    @pytest.mark.asyncio
    async def test_reports_unused(self, tmp_path, write_tree):
        """Test a declared but never imported package is reported."""
        write_tree(tmp_path, {
            "package.json": {
                "dependencies": {"react": "^18.0.0", "left-pad": "^1.3.0"},
                "devDependencies": {"@types/react": "^18.0.0", "vitest": "^1.0.0"},
                "scripts": {"test": "vitest"},
            },
            "src/App.tsx": "import React from 'react';\n",
            "node_modules/left-pad/index.js": "",
        })

        result = await check_unused_dependencies.run(_context(tmp_path))

        assert result.status == "warn"
        assert result.details == {"unused": ["left-pad"], "total_dependencies": 4}
        assert "npm uninstall left-pad" in result.suggestions[1]

    @pytest.mark.asyncio
    async def test_all_used(self, tmp_path, write_tree):
        """Test nested source files are searched."""
        write_tree(tmp_path, {
            "package.json": {"dependencies": {"express": "^4.0.0"}},
            "src/server/app.js": "const express = require('express');\n",
        })

        result = await check_unused_dependencies.run(_context(tmp_path))

        assert result.status == "pass"

    @pytest.mark.asyncio
    async def test_skips(self, tmp_path, write_tree):
        """Test missing package.json, missing src and the toggle skip."""
        assert (await check_unused_dependencies.run(_context(tmp_path))).status == "skip"

        write_tree(tmp_path, {"package.json": {"dependencies": {"react": "18"}}})
        assert (await check_unused_dependencies.run(_context(tmp_path))).status == "skip"

        write_tree(tmp_path, {"src/index.js": ""})
        disabled = _context(tmp_path, check_unused_dependencies=False)
        assert (await check_unused_dependencies.run(disabled)).status == "skip"


class TestDependencyTree:
    """Test cases for checks built on ``npm ls``."""

    def test_find_duplicates(self):
        """Test versions are collected across the whole tree."""
        assert find_duplicates(LS_TREE) == [
            {"package": "lodash", "versions": ["4.17.15", "4.17.21"]},
        ]

    def test_find_unmet_peers(self):
        """Test peer problems from both npm ls formats."""
        tree = {
            "problems": [
                "peer dep missing: react@^18.0.0, required by react-dom@18.2.0",
                "missing: left-pad@^1.0.0, required by demo@1.0.0",
            ],
            "dependencies": {
                "styled": {
                    "version": "6.0.0",
                    "problems": ["missing peer @emotion/react@^11, required by styled@6.0.0"],
                },
                "graphql": {"required": "^16", "peerMissing": True},
            },
        }

        assert find_unmet_peers(tree) == ["@emotion/react", "graphql", "react"]

    @pytest.mark.asyncio
    async def test_duplicates_reported(self, tmp_path, make_runner):
        """Test the duplicate check warns on conflicting versions."""
        (tmp_path / "package.json").write_text('{"name": "demo"}')
        runner = make_runner([_ls_result(LS_TREE, exit_code=1)])

        result = await check_duplicate_dependencies.run(_context(tmp_path, runner))

        assert result.status == "warn"
        assert result.details["total_duplicates"] == 1
        assert runner.calls[0]["argv"] == ["npm", "ls", "--all", "--json"]

    @pytest.mark.asyncio
    async def test_peers_reported(self, tmp_path, make_runner):
        """Test the peer check fails on unmet peers."""
        (tmp_path / "package.json").write_text('{"name": "demo"}')
        tree = {"problems": ["peer dep missing: react@^18.0.0, required by x@1.0.0"]}
        runner = make_runner([_ls_result(tree, exit_code=1)])

        result = await check_peer_dependencies.run(_context(tmp_path, runner))

        assert result.status == "fail"
        assert result.details == ["react"]
        assert result.suggestions[1] == "Run: npm install --save-dev react"

    @pytest.mark.asyncio
    async def test_clean_tree(self, tmp_path, make_runner):
        """Test a consistent tree passes both checks."""
        (tmp_path / "package.json").write_text('{"name": "demo"}')
        tree = {"dependencies": {"acorn": {"version": "8.11.0"}}}
        context = _context(tmp_path, make_runner([_ls_result(tree)]))

        assert (await check_duplicate_dependencies.run(context)).status == "pass"
        assert (await check_peer_dependencies.run(context)).status == "pass"

    @pytest.mark.asyncio
    async def test_tree_loaded_once(self, tmp_path, make_runner):
        """Test the duplicate, peer and SBOM checks share one npm ls call."""
        (tmp_path / "package.json").write_text('{"name": "demo"}')
        runner = make_runner([_ls_result(LS_TREE)])
        context = _context(tmp_path, runner, generate_sbom=True)

        await check_duplicate_dependencies.run(context)
        await check_peer_dependencies.run(context)
        sbom = await check_sbom.run(context)

        assert len(runner.calls) == 1
        assert sbom.status == "pass"

    @pytest.mark.asyncio
    async def test_npm_ls_failure(self, tmp_path, make_runner):
        """Test a failed npm ls fails duplicates and warns for peers."""
        (tmp_path / "package.json").write_text('{"name": "demo"}')
        context = _context(tmp_path, make_runner([ProcessTimeoutError(["npm"], 30.0)]))

        duplicates = await check_duplicate_dependencies.run(context)
        peers = await check_peer_dependencies.run(context)

        assert (duplicates.status, duplicates.severity) == ("fail", "error")
        assert peers.status == "warn"

    @pytest.mark.asyncio
    async def test_no_package_json(self, tmp_path, make_runner):
        """Test projects without package.json never run npm ls."""
        runner = make_runner()
        context = _context(tmp_path, runner)

        assert (await check_duplicate_dependencies.run(context)).status == "skip"
        assert (await check_peer_dependencies.run(context)).status == "skip"
        assert runner.calls == []
