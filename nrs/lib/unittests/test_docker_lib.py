# nrs/lib/unittests/test_docker_lib.py
import unittest
from unittest.mock import MagicMock

from docker.errors import APIError, DockerException, ImageNotFound, NotFound

import nrs.lib.docker_lib as docker_lib
from nrs.lib.errors import LaunchFailure, PreflightError


class TestContainerSpec(unittest.TestCase):
    def test_video_group_with_kfd(self):
        spec = docker_lib.ContainerSpec(name='c', image='i', command=['true'], devices=['/dev/kfd', '/dev/dri'])
        self.assertEqual(spec.group_add, ['video'])

    def test_no_video_group_without_kfd(self):
        spec = docker_lib.ContainerSpec(name='c', image='i', command=['true'], devices=['/dev/dri'])
        self.assertEqual(spec.group_add, [])


class TestDockerProvider(unittest.TestCase):
    def setUp(self):
        self.mock_client = MagicMock()
        self.provider = docker_lib.DockerProvider(client=self.mock_client)
        self.spec = docker_lib.ContainerSpec(
            name='sglang_stress_iter1_42',
            image='lmsysorg/sglang:latest',
            command=['bash', '-c', 'python3 -m sglang.launch_server'],
            devices=['/dev/kfd'],
            volumes={'/home/u': '/workspace/'},
            environment={'HF_TOKEN': 'hf_x'},
            hostname='STRESS-node01',
        )

    def test_ping(self):
        self.provider.ping()
        self.mock_client.ping.assert_called_once()

    def test_ping_failure_is_preflight_error(self):
        self.mock_client.ping.side_effect = DockerException('no daemon')
        with self.assertRaises(PreflightError):
            self.provider.ping()

    def test_create_passes_launch_flags(self):
        self.provider.create(self.spec)
        kwargs = self.mock_client.containers.run.call_args.kwargs
        self.assertEqual(kwargs['name'], 'sglang_stress_iter1_42')
        self.assertEqual(kwargs['image'], 'lmsysorg/sglang:latest')
        self.assertTrue(kwargs['detach'])
        self.assertEqual(kwargs['network_mode'], 'host')
        self.assertEqual(kwargs['ipc_mode'], 'host')
        self.assertEqual(kwargs['shm_size'], '128G')
        self.assertEqual(kwargs['group_add'], ['video'])
        self.assertEqual(kwargs['cap_add'], ['SYS_PTRACE', 'SYS_ADMIN'])
        self.assertEqual(kwargs['security_opt'], ['seccomp=unconfined'])
        self.assertEqual(kwargs['user'], 'root')
        self.assertEqual(kwargs['working_dir'], '/workspace/')
        self.assertEqual(kwargs['hostname'], 'STRESS-node01')
        self.assertEqual(kwargs['volumes'], {'/home/u': {'bind': '/workspace/', 'mode': 'rw'}})
        self.assertEqual(kwargs['ulimits'][0]['Name'], 'memlock')
        self.assertEqual(kwargs['ulimits'][0]['Soft'], docker_lib.MEMLOCK_LIMIT)

    def test_create_missing_image(self):
        self.mock_client.containers.run.side_effect = ImageNotFound('nope')
        with self.assertRaises(LaunchFailure) as ctx:
            self.provider.create(self.spec)
        self.assertIn('lmsysorg/sglang:latest', str(ctx.exception))

    def test_create_daemon_error(self):
        self.mock_client.containers.run.side_effect = APIError('conflict')
        with self.assertRaises(LaunchFailure):
            self.provider.create(self.spec)

    def test_destroy_removes_container(self):
        container = self.mock_client.containers.get.return_value
        self.assertTrue(self.provider.destroy('c1'))
        container.remove.assert_called_once_with(force=True)

    def test_destroy_is_idempotent(self):
        self.mock_client.containers.get.side_effect = NotFound('gone')
        self.assertFalse(self.provider.destroy('c1'))
        self.assertFalse(self.provider.destroy('c1'))

    def test_destroy_removal_in_progress(self):
        response = MagicMock(status_code=409)
        self.mock_client.containers.get.return_value.remove.side_effect = APIError('in progress', response=response)
        self.assertFalse(self.provider.destroy('c1'))

    def test_is_alive(self):
        self.mock_client.containers.get.return_value.status = 'running'
        self.assertTrue(self.provider.is_alive('c1'))
        self.mock_client.containers.get.return_value.status = 'exited'
        self.assertFalse(self.provider.is_alive('c1'))

    def test_is_alive_missing_container(self):
        self.mock_client.containers.get.side_effect = NotFound('gone')
        self.assertFalse(self.provider.is_alive('c1'))

    def test_exec_inside_decodes_output(self):
        self.mock_client.containers.get.return_value.exec_run.return_value = (0, b'1234\n')
        self.assertEqual(self.provider.exec_inside('c1', ['pgrep', '-f', 'x']), (0, '1234\n'))

    def test_exec_inside_detached(self):
        self.mock_client.containers.get.return_value.exec_run.return_value = (None, None)
        self.assertEqual(self.provider.exec_inside('c1', ['bash', '-c', 'x'], detach=True), (None, ''))
        self.mock_client.containers.get.return_value.exec_run.assert_called_once_with(
            ['bash', '-c', 'x'], detach=True
        )

    def test_exec_inside_gone_container(self):
        self.mock_client.containers.get.side_effect = NotFound('gone')
        self.assertEqual(self.provider.exec_inside('c1', ['true']), (-1, ''))

    def test_stream_logs(self):
        self.mock_client.containers.get.return_value.logs.return_value = iter([b'a', b'b'])
        self.assertEqual(list(self.provider.stream_logs('c1')), [b'a', b'b'])

    def test_stream_logs_gone_container(self):
        self.mock_client.containers.get.side_effect = NotFound('gone')
        self.assertEqual(list(self.provider.stream_logs('c1')), [])


if __name__ == '__main__':
    unittest.main()
