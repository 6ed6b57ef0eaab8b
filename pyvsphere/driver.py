# vim: tabstop=4 shiftwidth=4 softtabstop=4

# Copyright (c) 2012 VMware, Inc.
# Copyright (c) 2011 Citrix Systems, Inc.
# Copyright 2011 OpenStack Foundation
#
#    Licensed under the Apache License, Version 2.0 (the "License"); you may
#    not use this file except in compliance with the License. You may obtain
#    a copy of the License at
#
#         http://www.apache.org/licenses/LICENSE-2.0
#
#    Unless required by applicable law or agreed to in writing, software
#    distributed under the License is distributed on an "AS IS" BASIS, WITHOUT
#    WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied. See the
#    License for the specific language governing permissions and limitations
#    under the License.

"""
A connection to the VMware vSphere platform.

VMwareAPISession owns the HTTP session with a vCenter or ESXi host: it
logs in, re-establishes an expired session, collects properties and
waits for server-side tasks. VMwareVSphereDriver composes the session
with the convenience operations.
"""

import http.cookiejar
import logging
import os
import time

from pyvsphere import cache
from pyvsphere import const
from pyvsphere import error_util
from pyvsphere import utils
from pyvsphere import vif
from pyvsphere import vim
from pyvsphere import vim_util
from pyvsphere import vmops
from pyvsphere import volumeops

LOG = logging.getLogger(__name__)

LOGGED_OUT = 'LoggedOut'
LOGGING_IN = 'LoggingIn'
LOGGED_IN = 'LoggedIn'
EXPIRED = 'Expired'


class VMwareAPISession(object):
    """
    Sets up a session with the vSphere host and handles all
    the calls made to the host.
    """

    def __init__(self, host, user, password, port=None, scheme="https",
                 insecure=True, cacert=None, proxy=None, timeout=None,
                 cookie_file=None, preserve_session=False,
                 task_poll_interval=const.TASK_POLL_INTERVAL,
                 task_timeout=const.TASK_TIMEOUT):
        self._host = host
        self._port = port
        self._host_username = user
        self._host_password = password
        self._scheme = scheme
        self._insecure = insecure
        self._cacert = cacert
        self._proxy = proxy
        self._timeout = timeout
        self._cookie_file = cookie_file
        self.preserve_session = preserve_session
        self.task_poll_interval = task_poll_interval
        self.task_timeout = task_timeout
        self.state = LOGGED_OUT
        self.service_content = None
        self.vim = None
        self._session_key = None
        self._last_activity = None
        self._idle_timeout = None
        self._closed = False
        if cookie_file:
            self._cookiejar = http.cookiejar.LWPCookieJar(cookie_file)
        else:
            self._cookiejar = http.cookiejar.CookieJar()
        self._create_session()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()

    def _get_vim_object(self):
        """Create the VIM Object instance."""
        return vim.Vim(protocol=self._scheme, host=self._host,
                       port=self._port, insecure=self._insecure,
                       cacert=self._cacert, proxy=self._proxy,
                       timeout=self._timeout, cookiejar=self._cookiejar)

    def _create_session(self):
        """Creates a session with the vSphere host."""
        self.vim = self._get_vim_object()
        self.refresh_service()
        if self._resume_session():
            return
        self.login()

    def _resume_session(self):
        """Reuses the session cookie stored in the cookie file, if any."""
        if not self._cookie_file or not os.path.exists(self._cookie_file):
            return False
        try:
            self._cookiejar.load(ignore_discard=True)
        except (OSError, http.cookiejar.LoadError) as excep:
            LOG.warning("Can't load cookies from %s: %s",
                        self._cookie_file, excep)
            return False
        session_manager = self.service_content.sessionManager
        try:
            bag = self._retrieve(
                'SessionManager',
                vim_util.build_single_object_set('SessionManager',
                                                 session_manager),
                ['currentSession'], retry=False)
        except error_util.VimFaultException as excep:
            LOG.debug("Stored session is not usable: %s", excep)
            return False
        current = bag.get(session_manager, {}).get('currentSession')
        if not current:
            return False
        self._session_key = current.get('key')
        self.state = LOGGED_IN
        self._last_activity = time.monotonic()
        LOG.info("Reusing session %s on %s", self._session_key, self._host)
        return True

    def refresh_service(self):
        """Retrieves the ServiceContent with references to the managers."""
        response = self._call_method(const.SERVICE_INSTANCE,
                                     const.SERVICE_INSTANCE,
                                     'RetrieveServiceContent', retry=False)
        returnval = response.getChild('returnval')
        if returnval is None:
            raise error_util.ProtocolError("Empty service content")
        self.service_content = vim_util.ServiceContent(
            vim_util.to_value(returnval))
        return self.service_content

    def login(self):
        """Logs in with the configured credentials.

        Server text of a rejected login is surfaced verbatim in AuthError.
        """
        self.state = LOGGING_IN
        spec = [vim_util.new_element('userName', self._host_username),
                vim_util.new_element('password', self._host_password)]
        try:
            response = self._call_method(
                'SessionManager', self.service_content.sessionManager,
                'Login', spec, retry=False)
        except error_util.VimFaultException as excep:
            self.state = LOGGED_OUT
            if (error_util.INVALID_LOGIN in excep.fault_list or
                    error_util.NO_PERMISSION in excep.fault_list):
                raise error_util.AuthError(excep.msg)
            raise
        except error_util.VimException:
            self.state = LOGGED_OUT
            raise
        returnval = response.getChild('returnval')
        session = vim_util.to_value(returnval) if returnval is not None \
            else {}
        self._session_key = session.get('key') \
            if isinstance(session, dict) else None
        self.state = LOGGED_IN
        self._last_activity = time.monotonic()
        self._save_cookies()
        LOG.info("Logged in to %s as %s", self._host, self._host_username)
        if self._idle_timeout is None:
            self._idle_timeout = self._fetch_idle_timeout()

    def logout(self):
        """Terminates the session; failures are logged, never raised."""
        if self.state in (LOGGED_IN, EXPIRED) and \
                self.service_content is not None:
            try:
                self._call_method('SessionManager',
                                  self.service_content.sessionManager,
                                  'Logout', retry=False)
                LOG.info("Logged out from %s", self._host)
            except error_util.VimException as excep:
                LOG.warning("Logout from %s failed: %s", self._host, excep)
        self.state = LOGGED_OUT
        self._session_key = None
        self._cookiejar.clear()
        self._save_cookies()

    def close(self):
        """Releases the session unless it is to be preserved."""
        if self._closed:
            return
        self._closed = True
        if self.preserve_session:
            self._save_cookies()
        else:
            self.logout()

    def __del__(self):
        """Logs-out the session."""
        if getattr(self, '_closed', True):
            return
        try:
            self.close()
        except Exception as excep:
            LOG.debug(excep)

    def _save_cookies(self):
        if not self._cookie_file:
            return
        try:
            self._cookiejar.save(ignore_discard=True)
        except OSError as excep:
            LOG.warning("Can't save cookies to %s: %s",
                        self._cookie_file, excep)

    @property
    def session_key(self):
        return self._session_key

    @property
    def idle_timeout(self):
        """Server side HTTP session idle timeout, fetched once."""
        if self._idle_timeout is None:
            self._idle_timeout = self._fetch_idle_timeout()
        return self._idle_timeout

    def _fetch_idle_timeout(self):
        setting = self.service_content.get('setting')
        if setting is None:
            return const.DEFAULT_IDLE_TIMEOUT
        try:
            response = self._call_method(
                'OptionManager', setting, 'QueryOptions',
                vim_util.new_element('name', const.IDLE_TIMEOUT_OPTION),
                retry=False)
            option = vim_util.to_value(response.getChild('returnval'))
            return int(option['value'])
        except (error_util.VimFaultException, error_util.ServerError,
                error_util.ProtocolError, AttributeError, KeyError,
                TypeError, ValueError) as excep:
            LOG.warning("Can't get the idle timeout, using %s seconds: %s",
                        const.DEFAULT_IDLE_TIMEOUT, excep)
            return const.DEFAULT_IDLE_TIMEOUT

    def _check_session(self):
        """Re-logins before a call that would hit an idle-expired session."""
        if self.state == LOGGED_IN:
            idle = time.monotonic() - self._last_activity
            if idle < self.idle_timeout:
                return
            LOG.info("Session idle for %d seconds, logging in again", idle)
            self.state = EXPIRED
        self.login()

    def _invoke(self, mo_type, moid, method, spec):
        LOG.debug("Calling %s on %s %s", method, mo_type, moid)
        response = self.vim.invoke(mo_type, moid, method, spec)
        self._last_activity = time.monotonic()
        return response

    def _call_method(self, mo_type, moid, method, spec=None, retry=True):
        """
        Calls a method of the managed object and returns the parsed
        <method>Response element.

        With retry set, an idle session is re-established beforehand and
        a NotAuthenticated fault triggers one re-login and one more try.
        """
        if not retry:
            return self._invoke(mo_type, moid, method, spec)
        self._check_session()
        try:
            return self._invoke(mo_type, moid, method, spec)
        except error_util.VimFaultException as excep:
            if error_util.NOT_AUTHENTICATED not in excep.fault_list:
                raise
            LOG.info("Session on %s expired, logging in again", self._host)
            self.state = EXPIRED
        self.login()
        try:
            return self._invoke(mo_type, moid, method, spec)
        except error_util.VimFaultException as excep:
            if error_util.NOT_AUTHENTICATED in excep.fault_list:
                self.state = EXPIRED
                raise error_util.AuthError(
                    "Not authenticated after a new login: %s" % excep.msg)
            raise

    def request(self, mo_type, moid, method, spec=None):
        """Calls a method of the managed object.

        spec is an Element or a list of Elements, see vim_util.new_element.
        Returns the <method>Response element.
        """
        return self._call_method(mo_type, moid, method, spec)

    def get_object_set(self, select_sets, root=None, root_type='Folder'):
        """Object set walking from root (the root folder by default)."""
        if root is None:
            root = self.service_content.rootFolder
        return vim_util.build_object_set(select_sets, root, root_type)

    def _retrieve(self, of, object_set, properties, max_objects=None,
                  keep_types=False, retry=True):
        collector = self.service_content.propertyCollector
        spec = vim_util.build_retrieve_spec(of, object_set, properties,
                                            max_objects)
        response = self._call_method('PropertyCollector', collector,
                                     'RetrievePropertiesEx', spec,
                                     retry=retry)
        bag = {}
        page = 1
        while True:
            result = vim_util.parse_retrieve_result(response, keep_types)
            LOG.debug("Page %d of %s: %d objects", page, of,
                      len(result.objects))
            for content in result.objects:
                bag.setdefault(content.obj, {}).update(content.props)
            if not result.token:
                break
            page += 1
            response = self._call_method(
                'PropertyCollector', collector,
                'ContinueRetrievePropertiesEx',
                vim_util.new_element('token', result.token), retry=retry)
        return bag

    def get_properties(self, of='VirtualMachine', moid=None, where=None,
                       object_set=None, properties=None, max_objects=None,
                       keep_types=False):
        """
        Returns properties of managed objects as a dictionary keyed by
        ManagedObjectReference, each value mapping property paths to values.

        :param of: type of the managed objects
        :param moid: collect only this object
        :param where: {path: value} equalities the objects must satisfy
        :param object_set: custom object set (see get_object_set)
        :param properties: property paths, all properties by default
        :param max_objects: page size of the retrieval
        :param keep_types: keep xsi:type of records under '_type'
        """
        where = where or {}
        for value in where.values():
            vim_util.filter_value(value)
        if moid is not None:
            object_set = vim_util.build_single_object_set(of, moid)
        elif object_set is None:
            graph = vim_util.TRAVERSAL_GRAPHS.get(of)
            if graph is None:
                raise error_util.ValidationError(
                    "Parameter 'object_set' should be set for type %s" % of)
            object_set = self.get_object_set(graph)
        if isinstance(properties, str):
            properties = [properties]
        paths = None
        if properties:
            paths = set(properties) | set(where)
        bag = self._retrieve(of, object_set, paths, max_objects, keep_types)
        if where:
            bag = dict((obj, props) for obj, props in bag.items()
                       if vim_util.matches(props, where))
        return bag

    def get_property(self, name, **kwargs):
        """Value of one property of the first matching object."""
        kwargs['properties'] = [name]
        bag = self.get_properties(**kwargs)
        if not bag:
            raise error_util.ManagedObjectNotFoundError(
                kwargs.get('of', 'VirtualMachine'))
        obj = sorted(bag, key=lambda mor: mor.value)[0]
        return bag[obj].get(name)

    def run_task(self, mo_type, moid, method, spec=None, timeout=None):
        """Starts a task method and waits for its result."""
        response = self._call_method(mo_type, moid, method, spec)
        returnval = response.getChild('returnval')
        if returnval is None or vim_util.ref_type(returnval) != 'Task':
            raise error_util.ProtocolError(
                "%s didn't return a task: %s" % (method, response.plain()))
        task = vim_util.to_value(returnval)
        LOG.debug("%s started task %s", method, task)
        return self.wait_for_task(task, timeout)

    def wait_for_task(self, task, timeout=None):
        """
        Return the result of the given task.
        The task is polled until it completes.
        """
        if not isinstance(task, vim_util.ManagedObjectReference):
            task = vim_util.ManagedObjectReference('Task', str(task))
        if timeout is None:
            timeout = self.task_timeout
        start = time.monotonic()
        loop = utils.FixedIntervalLoopingCall(self._poll_task, task, start,
                                              timeout)
        loop.start(self.task_poll_interval)
        try:
            return loop.wait()
        finally:
            loop.stop()

    def _poll_task(self, task, start, timeout):
        """
        Poll the given task, and stop the loop with the result if the
        task reached a terminal state.
        """
        info = vim_util.task_info(
            self.get_property('info', of='Task', moid=task))
        LOG.debug("Task %s state: %s", task, info.state)
        if info.state in ('queued', 'running'):
            elapsed = time.monotonic() - start
            if elapsed >= timeout:
                raise error_util.TaskTimeout(task, elapsed)
            return
        if info.state == 'success':
            raise utils.LoopingCallDone(info.result)
        if info.state == 'error':
            error_info = vim_util.task_error_message(info)
            LOG.warning("Task %s status: error %s", task, error_info)
            raise error_util.TaskError(task, error_info, info.raw)
        raise error_util.ProtocolError(
            "Task %s is in unexpected state '%s'" % (task, info.state))


class VMwareVSphereDriver(object):
    """The vSphere host connection object."""

    def __init__(self, host, user, password, port=None, scheme="https",
                 insecure=True, cacert=None, proxy=None, timeout=None,
                 cookie_file=None, preserve_session=False,
                 task_poll_interval=const.TASK_POLL_INTERVAL,
                 task_timeout=const.TASK_TIMEOUT, moid_cache=None,
                 cache_disabled=False):
        self._session = VMwareAPISession(
            host, user, password, port=port, scheme=scheme,
            insecure=insecure, cacert=cacert, proxy=proxy, timeout=timeout,
            cookie_file=cookie_file, preserve_session=preserve_session,
            task_poll_interval=task_poll_interval,
            task_timeout=task_timeout)
        if moid_cache is None:
            moid_cache = cache.MoidCache(disabled=cache_disabled)
        self._cache = moid_cache
        self._vmops = vmops.VMwareVMOps(self._session, self._cache)
        self._volumeops = volumeops.VMwareVolumeOps(self._session,
                                                    self._vmops)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()

    @property
    def session(self):
        return self._session

    def close(self):
        """Logs out unless the session is preserved."""
        self._session.close()

    def clear_cache(self):
        """Forgets all cached managed object ids."""
        self._cache.clear()

    def request(self, mo_type, moid, method, spec=None):
        """Calls any API method; returns the flattened response."""
        response = self._session.request(mo_type, moid, method, spec)
        returnvals = response.getChildren('returnval')
        if not returnvals:
            return None
        if len(returnvals) == 1:
            return vim_util.to_value(returnvals[0])
        return [vim_util.to_value(val) for val in returnvals]

    def get_properties(self, of='VirtualMachine', moid=None, where=None,
                       object_set=None, properties=None, max_objects=None,
                       keep_types=False):
        """Properties of managed objects keyed by their references."""
        return self._session.get_properties(
            of=of, moid=moid, where=where, object_set=object_set,
            properties=properties, max_objects=max_objects,
            keep_types=keep_types)

    def get_property(self, name, of='VirtualMachine', moid=None, where=None):
        """Value of one property of the first matching object."""
        return self._session.get_property(name, of=of, moid=moid,
                                          where=where)

    def run_task(self, mo_type, moid, method, spec=None, timeout=None):
        """Starts a task method and waits for its result."""
        return self._session.run_task(mo_type, moid, method, spec, timeout)

    def wait_for_task(self, task, timeout=None):
        """Waits for the task and returns its result."""
        return self._session.wait_for_task(task, timeout)

    def list(self, type='VirtualMachine'):
        """List names of the managed objects of a type."""
        return self._vmops.list(type)

    def get_moid(self, name, type='VirtualMachine'):
        """Return ID of the managed object by its name."""
        return self._vmops.get_moid(name, type)

    def delete(self, name, type='VirtualMachine'):
        """Remove the managed object (and its files) by name."""
        return self._vmops.delete(name, type)

    def get_vm_path(self, vm_name):
        """Return path to the VM configuration file."""
        return self._vmops.get_vm_path(vm_name)

    def get_vm_powerstate(self, vm_name):
        """Return poweredOff, poweredOn or suspended."""
        return self._vmops.get_vm_powerstate(vm_name)

    def tools_is_running(self, vm_name):
        """Return True if VMware Tools is running on the VM."""
        return self._vmops.tools_is_running(vm_name)

    def poweron_vm(self, vm_name):
        """Power on (or resume) the VM."""
        return self._vmops.poweron_vm(vm_name)

    def poweroff_vm(self, vm_name):
        """Power off the VM."""
        return self._vmops.poweroff_vm(vm_name)

    def shutdown_vm(self, vm_name):
        """Ask the guest OS to shut down; does not wait for it."""
        return self._vmops.shutdown_vm(vm_name)

    def reboot_vm(self, vm_name):
        """Ask the guest OS to reboot; does not wait for it."""
        return self._vmops.reboot_vm(vm_name)

    def list_snapshots(self, vm_name):
        """Return {snapshot id: snapshot name} of the VM."""
        return self._vmops.list_snapshots(vm_name)

    def create_snapshot(self, vm_name, name=None, description='',
                        memory=False, quiesce=False):
        """Create a snapshot of the VM; it becomes the current one."""
        return self._vmops.create_snapshot(vm_name, name=name,
                                           description=description,
                                           memory=memory, quiesce=quiesce)

    def revert_to_current_snapshot(self, vm_name):
        """Revert the VM to its current snapshot."""
        return self._vmops.revert_to_current_snapshot(vm_name)

    def revert_to_snapshot(self, snapshot):
        """Revert to the snapshot with the given ID."""
        return self._vmops.revert_to_snapshot(snapshot)

    def remove_snapshot(self, snapshot, removeChildren=True,
                        consolidate=True):
        """Remove the snapshot and delete its storage."""
        return self._vmops.remove_snapshot(snapshot,
                                           removeChildren=removeChildren,
                                           consolidate=consolidate)

    def reconfigure_vm(self, vm_name, numCPUs=None, numCoresPerSocket=None,
                       memoryMB=None):
        """Change number of CPUs, cores per socket or memory of the VM."""
        return self._vmops.reconfigure_vm(
            vm_name, numCPUs=numCPUs, numCoresPerSocket=numCoresPerSocket,
            memoryMB=memoryMB)

    def connect_cdrom(self, vm_name, iso):
        """Mount an ISO image to the virtual CD/DVD device."""
        return self._vmops.connect_cdrom(vm_name, iso)

    def disconnect_cdrom(self, vm_name):
        """Unmount the virtual CD/DVD device."""
        return self._vmops.disconnect_cdrom(vm_name)

    def connect_floppy(self, vm_name, image):
        """Connect a floppy image to the VM."""
        return self._vmops.connect_floppy(vm_name, image)

    def disconnect_floppy(self, vm_name):
        """Disconnect the virtual floppy drive."""
        return self._vmops.disconnect_floppy(vm_name)

    def mount_tools_installer(self, vm_name):
        """Mount the VMware Tools installer CD."""
        return self._vmops.mount_tools_installer(vm_name)

    def register_vm(self, vm_name, datacenter=None, cluster=None, host=None,
                    path=None, as_template=False):
        """Register a VM from its config file in the inventory."""
        return self._vmops.register_vm(vm_name, datacenter=datacenter,
                                       cluster=cluster, host=host, path=path,
                                       as_template=as_template)

    def unregister_vm(self, vm_name):
        """Remove the VM from the inventory, keeping its files."""
        return self._vmops.unregister_vm(vm_name)

    def clone(self, vm_name, clone_name, datastore=None, folder=None):
        """Create a full clone of the VM."""
        return self._vmops.clone(vm_name, clone_name, datastore=datastore,
                                 folder=folder)

    def linked_clone(self, vm_name, clone_name):
        """Create a linked clone from the current snapshot of the VM."""
        return self._vmops.linked_clone(vm_name, clone_name)

    def run_in_vm(self, vm_name, username, password, cmd, args='', dir=None,
                  env=None):
        """Start a program in the guest OS and return its pid."""
        return self._vmops.run_in_vm(vm_name, username, password, cmd,
                                     args=args, dir=dir, env=env)

    def list_vm_processes(self, vm_name, username, password, *pids):
        """List processes in the guest OS, optionally only given pids."""
        return self._vmops.list_vm_processes(vm_name, username, password,
                                             *pids)

    def add_disk(self, vm_name, size=None, file=None, thin=True,
                 controller=1000, unit=1, mode='persistent'):
        """Create a virtual disk (size in KB) or attach an existing file."""
        return self._volumeops.add_disk(vm_name, size=size, file=file,
                                        thin=thin, controller=controller,
                                        unit=unit, mode=mode)

    def create_disk(self, vm_name, size=None, file=None, thin=True,
                    controller=1000, unit=1, mode='persistent'):
        """Alias for add_disk."""
        return self.add_disk(vm_name, size=size, file=file, thin=thin,
                             controller=controller, unit=unit, mode=mode)

    def remove_disk(self, vm_name, key, destroy=True):
        """Remove the virtual disk with the given device key."""
        return self._volumeops.remove_disk(vm_name, key, destroy=destroy)

    def add_nas_storage(self, host_name=None, remote_host=None,
                        remote_path=None, local_path=None, type='nfs',
                        access_mode='readWrite'):
        """Mount a NAS datastore on the host; returns its ID."""
        return self._volumeops.add_nas_storage(
            host_name=host_name, remote_host=remote_host,
            remote_path=remote_path, local_path=local_path, type=type,
            access_mode=access_mode)

    def find_files(self, datastore=None, pattern=None, path=None,
                   case_sensitive=False, with_info=False):
        """Search files on the datastore by pattern."""
        return self._volumeops.find_files(
            datastore=datastore, pattern=pattern, path=path,
            case_sensitive=case_sensitive, with_info=with_info)

    def get_datastore_url(self, name):
        """Return the unique locator of the datastore."""
        return self._volumeops.get_datastore_url(name)

    def add_portgroup(self, host, vswitch, portgroup, vlan=0):
        """Add a port group to the virtual switch of the host."""
        return vif.add_portgroup(self._session, host, vswitch, portgroup,
                                 vlan)

    def remove_portgroup(self, host, portgroup):
        """Remove a port group from the host."""
        return vif.remove_portgroup(self._session, host, portgroup)
