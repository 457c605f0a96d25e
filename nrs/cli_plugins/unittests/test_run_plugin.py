import argparse
import os
import tempfile
import unittest
from pathlib import Path
from unittest.mock import MagicMock, patch

import yaml

from nrs.cli_plugins.run_plugin import RunPlugin
from nrs.lib.errors import AdapterNotFound, ConfigError, PreflightError
from nrs.runners._base_runner import RunSummary

PRESET = {
    'framework': 'sglang',
    'docker': {'image': 'lmsysorg/sglang:latest'},
    'server': {'model_path': 'zai-org/GLM-4.7-FP8'},
    'server_args': {'tp-size': 8},
    'test': {'num_loops': 4},
}


def make_args(config, **kwargs):
    args = argparse.Namespace(
        config=str(config), loops=None, image=None, port=None, framework=None, mode=None,
        dry_run=False, log_level='INFO',
    )
    for key, value in kwargs.items():
        setattr(args, key, value)
    return args


class TestRunPlugin(unittest.TestCase):
    def setUp(self):
        self.plugin = RunPlugin()
        self.tmp = tempfile.TemporaryDirectory()
        self.config_path = Path(self.tmp.name) / 'preset.yaml'
        self.write_config(PRESET)

    def tearDown(self):
        self.tmp.cleanup()

    def write_config(self, data):
        self.config_path.write_text(yaml.safe_dump(data))

    def test_parser(self):
        parser = argparse.ArgumentParser()
        subparsers = parser.add_subparsers()
        self.plugin.get_parser(subparsers)
        args = parser.parse_args(['run', '--config', 'p.yaml', '--loops', '5', '--mode', 'server', '--dry-run'])
        self.assertEqual(args.loops, 5)
        self.assertEqual(args.mode, 'server')
        self.assertTrue(args.dry_run)
        self.assertIs(args._plugin, self.plugin)

    def test_load_applies_cli_over_env(self):
        args = make_args(self.config_path, loops=2)
        config, adapter, prompts = self.plugin.load(args, environ={'STRESS_LOOPS': '9', 'STRESS_PORT': '31000'})
        self.assertEqual(config.test.num_loops, 2)
        self.assertEqual(config.server.port, 31000)
        self.assertEqual(adapter.name, 'sglang')
        self.assertTrue(prompts.prompt_content)

    def test_load_unknown_framework(self):
        with self.assertRaises(AdapterNotFound):
            self.plugin.load(make_args(self.config_path, framework='tgi'), environ={})

    def test_load_adapter_validation(self):
        self.write_config(dict(PRESET, server_args={'port': 1}))
        with self.assertRaises(ConfigError):
            self.plugin.load(make_args(self.config_path), environ={})

    def test_prompts_file_relative_to_config(self):
        (Path(self.tmp.name) / 'my_prompts.json').write_text('{"prompts": [{"content": "ping?"}]}')
        self.write_config(dict(PRESET, test={'prompts_file': 'my_prompts.json'}))
        _, _, prompts = self.plugin.load(make_args(self.config_path), environ={})
        self.assertEqual(prompts.prompt_content, 'ping?')

    def test_preflight_requires_hf_token(self):
        provider = MagicMock()
        with self.assertRaises(PreflightError):
            self.plugin.preflight(provider, environ={})
        provider.ping.assert_not_called()

    def test_preflight_pings_docker(self):
        provider = MagicMock()
        self.plugin.preflight(provider, environ={'HF_TOKEN': 'hf_x'})
        provider.ping.assert_called_once()

    @patch('nrs.cli_plugins.run_plugin.logging.basicConfig')
    @patch('nrs.cli_plugins.run_plugin.DockerProvider')
    @patch('builtins.print')
    def test_dry_run(self, mock_print, mock_provider, mock_basic_config):
        with self.assertRaises(SystemExit) as ctx:
            self.plugin.run(make_args(self.config_path, dry_run=True))
        self.assertEqual(ctx.exception.code, 0)
        mock_provider.assert_not_called()
        printed = '\n'.join(str(c.args[0]) for c in mock_print.call_args_list if c.args)
        self.assertIn('DRY RUN - Configuration Summary', printed)
        self.assertIn('python3 -m sglang.launch_server --model-path zai-org/GLM-4.7-FP8 --port 30000 --tp-size 8', printed)

    @patch('nrs.cli_plugins.run_plugin.logging.basicConfig')
    @patch('builtins.print')
    def test_fatal_error_exits_1(self, mock_print, mock_basic_config):
        with self.assertRaises(SystemExit) as ctx:
            self.plugin.run(make_args(Path(self.tmp.name) / 'missing.yaml'))
        self.assertEqual(ctx.exception.code, 1)
        self.assertIn('Config file not found', mock_print.call_args.args[0])

    @patch.dict(os.environ, {'HF_TOKEN': 'hf_x'})
    @patch('nrs.cli_plugins.run_plugin.signal.signal')
    @patch('nrs.cli_plugins.run_plugin.logging.basicConfig')
    @patch('nrs.cli_plugins.run_plugin.HttpClient')
    @patch('nrs.cli_plugins.run_plugin.DockerProvider')
    @patch('nrs.cli_plugins.run_plugin.StressTestRunner')
    def test_run_exit_code(self, mock_runner, mock_provider, mock_http, mock_basic_config, mock_signal):
        mock_runner.return_value.execute.return_value = RunSummary(success_count=3, fail_count=1)
        with self.assertRaises(SystemExit) as ctx:
            self.plugin.run(make_args(self.config_path))
        self.assertEqual(ctx.exception.code, 1)
        mock_provider.return_value.ping.assert_called_once()
        mock_http.return_value.close.assert_called_once()
        mock_signal.assert_called_once()

    @patch.dict(os.environ, {'HF_TOKEN': 'hf_x'})
    @patch('nrs.cli_plugins.run_plugin.signal.signal')
    @patch('nrs.cli_plugins.run_plugin.logging.basicConfig')
    @patch('nrs.cli_plugins.run_plugin.HttpClient')
    @patch('nrs.cli_plugins.run_plugin.DockerProvider')
    @patch('nrs.cli_plugins.run_plugin.StressTestRunner')
    def test_run_all_passed(self, mock_runner, mock_provider, mock_http, mock_basic_config, mock_signal):
        mock_runner.return_value.execute.return_value = RunSummary(success_count=4)
        with self.assertRaises(SystemExit) as ctx:
            self.plugin.run(make_args(self.config_path))
        self.assertEqual(ctx.exception.code, 0)


if __name__ == '__main__':
    unittest.main()
