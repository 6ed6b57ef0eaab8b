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

"""Managed object types known to the vSphere API."""

MO_TYPES = (
    'Alarm',
    'AlarmManager',
    'AuthorizationManager',
    'CertificateManager',
    'ClusterComputeResource',
    'ClusterEVCManager',
    'ClusterProfile',
    'ClusterProfileManager',
    'ComputeResource',
    'ContainerView',
    'CustomFieldsManager',
    'CustomizationSpecManager',
    'Datacenter',
    'Datastore',
    'DatastoreNamespaceManager',
    'DiagnosticManager',
    'DistributedVirtualPortgroup',
    'DistributedVirtualSwitch',
    'DistributedVirtualSwitchManager',
    'EnvironmentBrowser',
    'EventHistoryCollector',
    'EventManager',
    'ExtensibleManagedObject',
    'ExtensionManager',
    'FileManager',
    'Folder',
    'GuestAliasManager',
    'GuestAuthManager',
    'GuestFileManager',
    'GuestOperationsManager',
    'GuestProcessManager',
    'GuestWindowsRegistryManager',
    'HistoryCollector',
    'HostAccessManager',
    'HostActiveDirectoryAuthentication',
    'HostAuthenticationManager',
    'HostAuthenticationStore',
    'HostAutoStartManager',
    'HostBootDeviceSystem',
    'HostCacheConfigurationManager',
    'HostCertificateManager',
    'HostCpuSchedulerSystem',
    'HostDatastoreBrowser',
    'HostDatastoreSystem',
    'HostDateTimeSystem',
    'HostDiagnosticSystem',
    'HostDirectoryStore',
    'HostEsxAgentHostManager',
    'HostFirewallSystem',
    'HostFirmwareSystem',
    'HostGraphicsManager',
    'HostHealthStatusSystem',
    'HostImageConfigManager',
    'HostKernelModuleSystem',
    'HostLocalAccountManager',
    'HostLocalAuthentication',
    'HostMemorySystem',
    'HostNetworkSystem',
    'HostPatchManager',
    'HostPciPassthruSystem',
    'HostPowerSystem',
    'HostProfile',
    'HostProfileManager',
    'HostServiceSystem',
    'HostSnmpSystem',
    'HostStorageSystem',
    'HostSystem',
    'HostVFlashManager',
    'HostVirtualNicManager',
    'HostVMotionSystem',
    'HostVsanInternalSystem',
    'HostVsanSystem',
    'HttpNfcLease',
    'InventoryView',
    'IoFilterManager',
    'IpPoolManager',
    'IscsiManager',
    'LicenseAssignmentManager',
    'LicenseManager',
    'ListView',
    'LocalizationManager',
    'ManagedEntity',
    'ManagedObjectView',
    'MessageBusProxy',
    'Network',
    'OpaqueNetwork',
    'OptionManager',
    'OverheadMemoryManager',
    'OvfManager',
    'PerformanceManager',
    'Profile',
    'ProfileComplianceManager',
    'ProfileManager',
    'PropertyCollector',
    'PropertyFilter',
    'ResourcePlanningManager',
    'ResourcePool',
    'ScheduledTask',
    'ScheduledTaskManager',
    'SearchIndex',
    'ServiceInstance',
    'ServiceManager',
    'SessionManager',
    'SimpleCommand',
    'StoragePod',
    'StorageResourceManager',
    'Task',
    'TaskHistoryCollector',
    'TaskManager',
    'UserDirectory',
    'View',
    'ViewManager',
    'VirtualApp',
    'VirtualDiskManager',
    'VirtualizationManager',
    'VirtualMachine',
    'VirtualMachineCompatibilityChecker',
    'VirtualMachineProvisioningChecker',
    'VirtualMachineSnapshot',
    'VmwareDistributedVirtualSwitch',
    'VRPResourceManager',
    'VsanUpgradeSystem',
)

SERVICE_INSTANCE = 'ServiceInstance'

# Fallback for the server's HTTP session idle timeout, seconds
DEFAULT_IDLE_TIMEOUT = 900
IDLE_TIMEOUT_OPTION = 'config.vpxd.httpClientIdleTimeout'

TASK_POLL_INTERVAL = 1.0
TASK_TIMEOUT = 600
